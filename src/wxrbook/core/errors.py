"""Error taxonomy for the import pipeline.

Document-level errors are fatal and raised before anything is written.
Asset errors are raised inside the fetcher and folded into an asset status;
markup errors are collected per post and reported after the run.
"""


class WxrImportError(Exception):
    """Base class for all importer errors."""


class MalformedDocument(WxrImportError):
    """The export is not well-formed XML or lacks the RSS channel/item structure."""


class SelectionError(WxrImportError):
    """No usable staged selection for a commit."""


class AssetError(WxrImportError):
    """A single image could not be imported."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}" if reason else url)


class UnsupportedAssetType(AssetError):
    """Malformed URL or a file extension outside the image allow-list."""


class DownloadFailed(AssetError):
    """Transport error or non-2xx response while downloading."""


class CorruptAsset(AssetError):
    """Downloaded bytes are not a usable image, even after fixing the extension."""


class RecoverableMarkupError(WxrImportError):
    """A libxml2 complaint raised while loading a post's HTML; collected, never raised."""

    def __init__(self, message: str, line: int = 0, column: int = 0, post_id: str | None = None):
        self.message = message
        self.line = line
        self.column = column
        self.post_id = post_id
        super().__init__(message)

    def __str__(self) -> str:
        where = f"post {self.post_id}, " if self.post_id else ""
        return f"{where}line {self.line}, column {self.column}: {self.message}"
