"""Shared fixtures for core unit tests: fake HTTP session, generated images, in-memory stores"""

import io

import pytest
import requests
from PIL import Image

from wxrbook.core.models import AssetStatus, RewrittenAsset
from wxrbook.crud.memory_repo import MemoryContentStore, MemoryTermStore
from wxrbook.crud.repo import AssetStore


def image_bytes(fmt: str = "PNG", size=(4, 4)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


class FakeResponse:
    def __init__(self, body: bytes = b"", status_code: int = 200, url: str = ""):
        self.body = body
        self.status_code = status_code
        self.url = url

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error for url: {self.url}")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]


class FakeSession:
    """Stands in for requests.Session; maps URL -> (body, status) and records every GET."""

    def __init__(self, routes: dict | None = None):
        self.routes = routes or {}
        self.requests: list[str] = []
        self.closed = False

    def get(self, url, stream=False, timeout=None):
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(b"", 404, url)
        if isinstance(route, Exception):
            raise route
        body, status = route if isinstance(route, tuple) else (route, 200)
        return FakeResponse(body, status, url)

    def close(self):
        self.closed = True


class RecordingAssetStore(AssetStore):
    """Keeps persisted bytes in memory and returns /media/<filename> references."""

    def __init__(self):
        self.saved: dict[str, bytes] = {}

    def persist(self, temp_path: str, filename: str) -> str:
        with open(temp_path, "rb") as fh:
            self.saved[filename] = fh.read()
        return f"/media/{filename}"


class StaticFetcher:
    """Fetcher returning a canned asset per URL; counts calls."""

    def __init__(self, known: dict[str, str] | None = None):
        self.known = known or {}
        self.calls: list[str] = []

    def fetch(self, url: str) -> RewrittenAsset:
        self.calls.append(url)
        if url in self.known:
            return RewrittenAsset(url, AssetStatus.ok, self.known[url])
        return RewrittenAsset(url, AssetStatus.unsupported_type)


@pytest.fixture(name="png_bytes")
def png_bytes_fixture():
    return image_bytes("PNG")


@pytest.fixture(name="jpeg_bytes")
def jpeg_bytes_fixture():
    return image_bytes("JPEG")


@pytest.fixture(name="fake_session")
def fake_session_fixture():
    return FakeSession()


@pytest.fixture(name="asset_store")
def asset_store_fixture():
    return RecordingAssetStore()


@pytest.fixture(name="static_fetcher")
def static_fetcher_fixture():
    return StaticFetcher({"https://example.com/a.png": "/media/a.png"})


@pytest.fixture(name="content_store")
def content_store_fixture():
    return MemoryContentStore()


@pytest.fixture(name="term_store")
def term_store_fixture():
    return MemoryTermStore()
