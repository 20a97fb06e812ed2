"""
bcvrates/core/http_client.py
Shared async httpx client for bcv.org.ve.
  • bcv_client() → lazily created, reused across refreshes
  • close_all()  → called once on shutdown
Per-call timeouts are passed on each request; the client default is only a
ceiling for calls that do not pass one.
"""

import httpx

from bcvrates.core.config import BCV_USER_AGENT, BCV_VERIFY_SSL, HTTP_TIMEOUT_S

_bcv_client: httpx.AsyncClient | None = None

_LIMITS  = httpx.Limits(max_connections=5, max_keepalive_connections=2)
_TIMEOUT = httpx.Timeout(HTTP_TIMEOUT_S, connect=15.0)

BCV_HEADERS = {
    "User-Agent":      BCV_USER_AGENT,
    "Accept":          "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "es-VE,es;q=0.9,en;q=0.5",
}


def bcv_client() -> httpx.AsyncClient:
    global _bcv_client
    if _bcv_client is None or _bcv_client.is_closed:
        _bcv_client = httpx.AsyncClient(
            headers=BCV_HEADERS,
            timeout=_TIMEOUT,
            follow_redirects=True,
            limits=_LIMITS,
            verify=BCV_VERIFY_SSL,
        )
    return _bcv_client


async def close_all() -> None:
    global _bcv_client
    if _bcv_client and not _bcv_client.is_closed:
        await _bcv_client.aclose()
    _bcv_client = None
