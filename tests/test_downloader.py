import asyncio

import httpx
import pytest

from audiobook_service.errors import DownloadError
from audiobook_service.jobs import SegmentDownloader


def _fetch(handler, url: str) -> bytes:
    async def run() -> bytes:
        async with SegmentDownloader(transport=httpx.MockTransport(handler)) as downloader:
            return await downloader.download(url)

    return asyncio.run(run())


def test_download_returns_body() -> None:
    body = _fetch(lambda request: httpx.Response(200, content=b"ID3-segment"), "https://cdn.example/a.mp3")

    assert body == b"ID3-segment"


def test_download_follows_redirects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old.mp3":
            return httpx.Response(302, headers={"Location": "https://cdn.example/new.mp3"})
        return httpx.Response(200, content=b"moved")

    assert _fetch(handler, "https://cdn.example/old.mp3") == b"moved"


@pytest.mark.parametrize("status", (403, 404, 500, 503))
def test_non_success_status_raises_download_error(status: int) -> None:
    with pytest.raises(DownloadError) as excinfo:
        _fetch(lambda request: httpx.Response(status), "https://cdn.example/missing.mp3")

    assert str(status) in excinfo.value.details
    assert "https://cdn.example/missing.mp3" in excinfo.value.details
    assert excinfo.value.status_code == 500


def test_network_failure_raises_download_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DownloadError) as excinfo:
        _fetch(handler, "https://cdn.example/a.mp3")

    assert "connection refused" in excinfo.value.details


def test_download_requires_context_manager() -> None:
    downloader = SegmentDownloader()

    with pytest.raises(RuntimeError):
        asyncio.run(downloader.download("https://cdn.example/a.mp3"))


def test_malformed_url_raises_download_error() -> None:
    with pytest.raises(DownloadError) as excinfo:
        _fetch(lambda request: httpx.Response(200, content=b"unused"), "https://[::1/a.mp3")

    assert "https://[::1/a.mp3" in excinfo.value.details
