"""HTTP client used to fetch remote audio segments."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from audiobook_service.errors import DownloadError

LOGGER = logging.getLogger(__name__)


class SegmentDownloader:
    """Fetch remote segments one at a time over a shared ``httpx.AsyncClient``.

    Use as an async context manager so the connection pool is closed once the
    job's downloads are done.
    """

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "SegmentDownloader":
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def download(self, url: str) -> bytes:
        """Return the body of ``url`` or raise :class:`DownloadError`."""

        if self._client is None:
            raise RuntimeError("SegmentDownloader must be used as an async context manager")

        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # malformed URLs fail while the request is built, outside HTTPError
            LOGGER.warning("Download of %s failed: %s", url, exc)
            raise DownloadError(f"Failed to download {url}: {exc}", cause=exc) from exc

        if not response.is_success:
            LOGGER.warning("Download of %s returned HTTP %s", url, response.status_code)
            raise DownloadError(
                f"Failed to download {url}: HTTP {response.status_code} {response.reason_phrase}"
            )

        LOGGER.debug("Downloaded %s (%s bytes)", url, len(response.content))
        return response.content
