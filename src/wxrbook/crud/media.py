"""Filesystem asset store for imported images"""

import shutil
from pathlib import Path

from wxrbook.crud.repo import AssetStore


def unique_filename(directory: Path, filename: str) -> str:
    """Return filename, or name-1.ext, name-2.ext, ... if it is already taken in directory."""
    stem, dot, ext = filename.rpartition(".")
    if not dot:
        stem, ext = filename, ""
    candidate, n = filename, 0
    while (directory / candidate).exists():
        n += 1
        candidate = f"{stem}-{n}.{ext}" if ext else f"{stem}-{n}"
    return candidate


class FileAssetStore(AssetStore):
    """Copy downloads into media_dir and reference them under media_url."""

    def __init__(self, media_dir: Path | str, media_url: str = "/media"):
        self.media_dir = Path(media_dir)
        self.media_url = media_url.rstrip("/")

    def persist(self, temp_path: str, filename: str) -> str:
        self.media_dir.mkdir(parents=True, exist_ok=True)
        name = unique_filename(self.media_dir, filename)
        shutil.copyfile(temp_path, self.media_dir / name)
        return f"{self.media_url}/{name}"
