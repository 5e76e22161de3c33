"""Unit tests for crud/media.py"""

from wxrbook.crud.media import FileAssetStore, unique_filename


def test_unique_filename(tmp_path):
    """Taken names get a numeric suffix before the extension."""
    assert unique_filename(tmp_path, "a.png") == "a.png"
    (tmp_path / "a.png").write_bytes(b"1")
    (tmp_path / "a-1.png").write_bytes(b"2")
    assert unique_filename(tmp_path, "a.png") == "a-2.png"


def test_unique_filename_without_extension(tmp_path):
    (tmp_path / "cover").write_bytes(b"1")
    assert unique_filename(tmp_path, "cover") == "cover-1"


def test_persist_copies_file(tmp_path):
    """persist copies the temp file and returns its URL."""
    src = tmp_path / "download.tmp"
    src.write_bytes(b"data")
    store = FileAssetStore(tmp_path / "media", "/static/media/")
    ref = store.persist(str(src), "cover.png")
    assert ref == "/static/media/cover.png"
    assert (tmp_path / "media" / "cover.png").read_bytes() == b"data"
    assert src.exists()


def test_persist_does_not_overwrite(tmp_path):
    """A second file with the same name is stored alongside the first."""
    src = tmp_path / "download.tmp"
    src.write_bytes(b"data")
    store = FileAssetStore(tmp_path / "media")
    assert store.persist(str(src), "cover.png") == "/media/cover.png"
    assert store.persist(str(src), "cover.png") == "/media/cover-1.png"
