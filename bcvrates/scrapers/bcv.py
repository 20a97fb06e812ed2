"""
bcvrates/scrapers/bcv.py
Network side of the BCV scraper.
  • check_live()     → cheap HEAD probe, the fail-fast gate before a fetch
  • fetch_document() → full GET of the home page, raw bytes
Both always run with a timeout. Bad statuses and transport errors become
SourceUnavailableError subclasses; the caller decides what to do next.
"""

import logging

import httpx

from bcvrates.core.config import BCV_BASE_URL, HTTP_TIMEOUT_S
from bcvrates.core.errors import FetchError, LivenessError
from bcvrates.core.http_client import bcv_client

log = logging.getLogger("bcv")


class BCVClient:
    def __init__(
        self,
        base_url: str = BCV_BASE_URL,
        timeout: float = HTTP_TIMEOUT_S,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self.timeout  = timeout
        self._client  = client

    def _http(self) -> httpx.AsyncClient:
        return self._client if self._client is not None else bcv_client()

    async def check_live(self, timeout: float | None = None) -> None:
        if timeout is None:
            timeout = self.timeout
        try:
            resp = await self._http().head(self.base_url, timeout=timeout)
        except httpx.HTTPError as ex:
            raise LivenessError(f"BCV unreachable: {ex!r}") from ex
        if resp.status_code >= 400:
            raise LivenessError(f"BCV website returned status {resp.status_code}")
        log.debug(f"BCV live (HTTP {resp.status_code})")

    async def fetch_document(self, timeout: float | None = None) -> bytes:
        if timeout is None:
            timeout = self.timeout
        try:
            resp = await self._http().get(self.base_url, timeout=timeout)
        except httpx.HTTPError as ex:
            raise FetchError(f"BCV fetch failed: {ex!r}") from ex
        if resp.status_code != 200:
            raise FetchError(f"BCV HTTP {resp.status_code}", status_code=resp.status_code)
        log.debug(f"BCV page fetched ({len(resp.content)} bytes)")
        return resp.content
