"""Remote image harvesting: download, validate, persist, memoize per run"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import PurePosixPath
from typing import Callable, Iterable
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, UnidentifiedImageError

from wxrbook.core.errors import AssetError, CorruptAsset, DownloadFailed, UnsupportedAssetType
from wxrbook.core.models import AssetStatus, RewrittenAsset
from wxrbook.core.utils.slug import sanitize_filename
from wxrbook.crud.repo import AssetStore


logger = logging.getLogger(__name__)

# Pillow format name -> canonical extension
FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG":  "png",
    "GIF":  "gif",
    "WEBP": "webp",
    "BMP":  "bmp",
    "TIFF": "tif",
}
_EXTENSION_ALIASES = {"jpeg": "jpg", "jpe": "jpg", "tiff": "tif"}

_STATUS_FOR_ERROR = {
    UnsupportedAssetType: AssetStatus.unsupported_type,
    DownloadFailed:       AssetStatus.download_failed,
    CorruptAsset:         AssetStatus.corrupt,
}


class AssetCache:
    """URL -> RewrittenAsset map owned by a single import run.

    get_or_fetch runs the loader at most once per URL, even when several
    threads ask for the same URL at the same time.
    """

    def __init__(self) -> None:
        self._results: dict[str, RewrittenAsset] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def __contains__(self, url: str) -> bool:
        with self._guard:
            return url in self._results

    def __len__(self) -> int:
        with self._guard:
            return len(self._results)

    def get_or_fetch(self, url: str, loader: Callable[[str], RewrittenAsset]) -> RewrittenAsset:
        with self._guard:
            if url in self._results:
                return self._results[url]
            lock = self._locks.setdefault(url, threading.Lock())
        with lock:
            with self._guard:
                if url in self._results:
                    return self._results[url]
            result = loader(url)
            with self._guard:
                self._results[url] = result
                self._locks.pop(url, None)
            return result


def is_valid_url(url: str) -> bool:
    """Absolute http(s) URL with a host."""
    try:
        parts = urlparse(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def filename_from_url(url: str) -> str:
    """Sanitized basename of the URL path, query string ignored, percent-escapes decoded."""
    basename = PurePosixPath(urlparse(url).path).name
    return sanitize_filename(unquote(basename))


def _extension(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return _EXTENSION_ALIASES.get(ext, ext)


def detect_image_format(path: str) -> str:
    """Return the Pillow format name of the image at path.

    Raises CorruptAsset when the bytes are not a readable image.
    """
    try:
        with Image.open(path) as img:
            fmt = img.format
            img.verify()
    except Image.DecompressionBombError as e:
        raise CorruptAsset(path, f"image too large: {e}") from e
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise CorruptAsset(path, f"not an image: {e}") from e
    if not fmt:
        raise CorruptAsset(path, "unknown image format")
    return fmt


def is_valid_image(path: str, filename: str) -> bool:
    """True when the file is a readable image whose real format matches the filename extension."""
    try:
        fmt = detect_image_format(path)
    except CorruptAsset:
        return False
    return FORMAT_EXTENSIONS.get(fmt) == _extension(filename)


def proper_image_extension(path: str, filename: str) -> str:
    """Return filename with its extension replaced by the one matching the real image format."""
    fmt = detect_image_format(path)
    ext = FORMAT_EXTENSIONS.get(fmt)
    if ext is None:
        raise CorruptAsset(path, f"unsupported image format {fmt}")
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return f"{stem}.{ext}"


class AssetFetcher:
    """Fetch remote images into the asset store, once per URL per run."""

    def __init__(
        self,
        store: AssetStore,
        cache: AssetCache | None = None,
        *,
        session: requests.Session | None = None,
        extensions: Iterable[str] = ("jpg", "jpeg", "gif", "png"),
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else AssetCache()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.extensions = {_EXTENSION_ALIASES.get(e.lower(), e.lower()) for e in extensions}
        self.timeout = timeout

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def fetch(self, url: str) -> RewrittenAsset:
        """Return the local reference for url, downloading it on first request."""
        if not is_valid_url(url):
            logger.warning("not importing image with malformed URL %r", url)
            return RewrittenAsset(source_url=url, status=AssetStatus.unsupported_type)
        return self.cache.get_or_fetch(url, self._load)

    def _load(self, url: str) -> RewrittenAsset:
        try:
            reference = self._import(url)
        except AssetError as e:
            status = _STATUS_FOR_ERROR.get(type(e), AssetStatus.corrupt)
            logger.warning("image %s not imported (%s): %s", url, status.value, e.reason)
            return RewrittenAsset(source_url=url, status=status)
        logger.debug("image %s imported as %s", url, reference)
        return RewrittenAsset(source_url=url, status=AssetStatus.ok, local_reference=reference)

    def _import(self, url: str) -> str:
        filename = filename_from_url(url)
        if _extension(filename) not in self.extensions:
            raise UnsupportedAssetType(url, f"unsupported file type {filename!r}")

        tmp_path = self._download(url)
        try:
            if not is_valid_image(tmp_path, filename):
                # extension may just be wrong; retry once with the real one
                filename = proper_image_extension(tmp_path, filename)
                if _extension(filename) not in self.extensions or not is_valid_image(tmp_path, filename):
                    raise CorruptAsset(url, "image is corrupt or of a disallowed type")
            try:
                return self.store.persist(tmp_path, filename)
            except OSError as e:
                raise DownloadFailed(url, f"could not store {filename}: {e}") from e
        except CorruptAsset as e:
            raise CorruptAsset(url, e.reason) from e
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)

    def _download(self, url: str) -> str:
        """Stream url into a temporary file and return its path."""
        fd, tmp_path = tempfile.mkstemp(prefix="wxrbook-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                    resp.raise_for_status()
                    for chunk in resp.iter_content(chunk_size=64 * 1024):
                        if chunk:
                            fh.write(chunk)
        except requests.RequestException as e:
            os.unlink(tmp_path)
            raise DownloadFailed(url, str(e)) from e
        except BaseException:
            os.unlink(tmp_path)
            raise
        return tmp_path
