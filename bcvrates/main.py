"""
bcvrates/main.py  — BCV Currency API
Startup: wires the service, launches the refresh + cache-sweep loops.
Reads are served from memory; only the refresh loop and POST /refresh ever
talk to bcv.org.ve.
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from bcvrates.core.config import HOST, LOG_LEVEL, PORT
from bcvrates.core.http_client import close_all
from bcvrates.core.service import CurrencyService, build_service
from bcvrates.routers import currencies
from bcvrates.routers.currencies import envelope

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("main")

VERSION = "1.0.0"


def create_app(service: CurrencyService | None = None, background: bool = True) -> FastAPI:
    """
    `service` overrides the config-wired one (tests inject a fake transport).
    `background=False` skips the refresh/sweep loops.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"🚀 BCV Currency API v{VERSION} starting...")
        app.state.service = service or build_service()
        if background:
            app.state.service.start()
        yield
        log.info("🛑 Shutting down...")
        await app.state.service.stop()
        await close_all()

    app = FastAPI(
        title="BCV Currency API",
        description=(
            "Reference exchange rates published by the Banco Central de Venezuela. "
            "Rates are scraped periodically and served from memory, cache-first."
        ),
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.time()
        response = await call_next(request)
        # health checks are polled constantly
        if request.url.path != "/api/v1/health":
            log.info(
                f"HTTP {request.method} {request.url.path} "
                f"{response.status_code} {(time.time() - t0) * 1000:.1f}ms"
            )
        return response

    app.include_router(currencies.router)

    @app.get("/", tags=["meta"])
    async def root():
        return {
            "service":     "BCV Currency API",
            "version":     VERSION,
            "description": "Exchange rates from the Banco Central de Venezuela",
            "endpoints": {
                "GET /api/v1/health":             "Service health",
                "GET /api/v1/currencies":         "All currencies",
                "GET /api/v1/currencies/{id}":    "One currency (EUR, USD, CNY, TRY, RUB)",
                "POST /api/v1/currencies/refresh": "Refresh rates from BCV",
                "GET /api/v1/cache/stats":        "Cache statistics",
                "GET /docs":                      "OpenAPI docs",
            },
            "parameters": {
                "cache":         "false to skip the cache (default: true)",
                "include_stale": "true to include stale rates (default: false)",
                "force":         "true to refresh even right after a refresh (default: false)",
            },
        }

    @app.get("/api/v1/health", tags=["meta"])
    async def health():
        return envelope(True, "API is running", data=app.state.service.health())

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
