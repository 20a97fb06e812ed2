"""
Shared fixtures: a controllable clock, BCV page builders and fake transports.
"""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from bcvrates.core.cache import TTLCache
from bcvrates.core.errors import FetchError, LivenessError
from bcvrates.core.repository import CurrencyRepository
from bcvrates.scrapers.bcv import BCVClient

BASE_URL = "https://www.bcv.org.ve/"
FIXED_NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic-style clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def rate_block(anchor: str, value: str) -> str:
    return (
        f'<div id="{anchor}" class="col-sm-12 col-xs-12">'
        f'<div class="field-content"><div class="row recuadrotsmc">'
        f'<div class="col-sm-6 col-xs-6"><span> {anchor.upper()} </span></div>'
        f'<div class="col-sm-6 col-xs-6 centrado"><strong> {value} </strong></div>'
        f"</div></div></div>"
    )


def bcv_page(**rates: str) -> str:
    blocks = "".join(rate_block(anchor, value) for anchor, value in rates.items())
    return f"<html><head><title>BCV</title></head><body><section>{blocks}</section></body></html>"


EXAMPLE_PAGE = bcv_page(euro="144,37320000", dolar="168,34059493")


def mock_bcv_client(page: str = EXAMPLE_PAGE, head_status: int = 200, get_status: int = 200):
    """BCVClient over httpx.MockTransport. Returns (client, seen requests)."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "HEAD":
            return httpx.Response(head_status)
        return httpx.Response(get_status, text=page)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BCVClient(BASE_URL, timeout=5.0, client=http), seen


class FakeBCV:
    """
    In-process stand-in for BCVClient.
    Set `gate` to make fetch_document() wait until the event is set.
    """

    def __init__(self, page: str = EXAMPLE_PAGE, live: bool = True, fetch_ok: bool = True):
        self.base_url   = BASE_URL
        self.page       = page
        self.live       = live
        self.fetch_ok   = fetch_ok
        self.gate: asyncio.Event | None = None
        self.live_calls = 0
        self.fetches    = 0

    async def check_live(self, timeout=None) -> None:
        self.live_calls += 1
        if not self.live:
            raise LivenessError("BCV website returned status 503")

    async def fetch_document(self, timeout=None) -> bytes:
        self.fetches += 1
        if self.gate is not None:
            await self.gate.wait()
        if not self.fetch_ok:
            raise FetchError("BCV HTTP 500", status_code=500)
        return self.page.encode("utf-8")


class RecordingCache(TTLCache):
    """TTLCache that remembers every key passed to delete()."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.deleted: list[str] = []

    def delete(self, key: str) -> None:
        self.deleted.append(key)
        super().delete(key)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    c = RecordingCache(clock=clock)
    yield c
    c.close()


@pytest.fixture
def repository():
    return CurrencyRepository()
