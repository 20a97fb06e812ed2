"""
bcvrates/routers/currencies.py
Endpoints:
  GET  /api/v1/currencies                     → all fresh rates (cache-first)
  GET  /api/v1/currencies?include_stale=true  → include rates past the window
  GET  /api/v1/currencies/{id}                → one rate, 404 when unknown
  POST /api/v1/currencies/refresh?force=true  → on-demand refresh from BCV
  GET  /api/v1/cache/stats                    → hits / misses / keys

`cache=false` on the GET endpoints bypasses the cache entirely.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import JSONResponse

from bcvrates.core.errors import RefreshTimeoutError
from bcvrates.core.service import CurrencyService

router = APIRouter(prefix="/api/v1", tags=["currencies"])


def get_service(request: Request) -> CurrencyService:
    return request.app.state.service


def envelope(
    success: bool,
    message: str,
    data: Any = None,
    error: Optional[str] = None,
    status_code: int = 200,
) -> JSONResponse:
    body: dict[str, Any] = {
        "success":   success,
        "message":   message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if data is not None:
        body["data"] = data
    if error:
        body["error"] = error
    return JSONResponse(body, status_code=status_code)


@router.get("/currencies")
async def list_currencies(
    cache:         bool = Query(True, description="false skips the cache"),
    include_stale: bool = Query(False, description="true includes rates older than the staleness window"),
    service: CurrencyService = Depends(get_service),
):
    result = service.get_all_currencies(use_cache=cache, include_stale=include_stale)
    return envelope(result.success, result.message, data=result.to_dict())


@router.post("/currencies/refresh")
async def refresh_currencies(
    force: bool = Query(False, description="true ignores the refresh cooldown"),
    service: CurrencyService = Depends(get_service),
):
    result = await service.refresh(force=force)
    if result.success:
        return envelope(True, result.message, data=result.to_dict())
    status = 504 if isinstance(result.error, RefreshTimeoutError) else 503
    return envelope(
        False, result.message,
        data=result.to_dict(),
        error=type(result.error).__name__ if result.error else None,
        status_code=status,
    )


@router.get("/currencies/{currency_id}")
async def get_currency(
    currency_id: str = Path(..., min_length=3, max_length=3),
    cache: bool = Query(True, description="false skips the cache"),
    service: CurrencyService = Depends(get_service),
):
    result = service.get_currency(currency_id, use_cache=cache)
    if not result.success:
        return envelope(False, result.message, status_code=404)
    return envelope(True, result.message, data=result.to_dict())


@router.get("/cache/stats", tags=["cache"])
async def cache_stats(service: CurrencyService = Depends(get_service)):
    return envelope(True, "Cache statistics", data=service.get_cache_stats().to_dict())
