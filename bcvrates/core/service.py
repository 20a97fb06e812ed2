"""
bcvrates/core/service.py
The one object the HTTP layer talks to. Wires the BCV client, repository,
cache, orchestrator, queries and background loops together and exposes:
  • refresh()             → RefreshResult
  • get_currency()        → CurrencyResult
  • get_all_currencies()  → CurrencyListResult
  • get_cache_stats()     → CacheStats
  • health()              → plain dict for /health
"""

from datetime import timedelta

from bcvrates.core import config
from bcvrates.core.cache import TTLCache
from bcvrates.core.models import CacheStats, CurrencyListResult, CurrencyResult, RefreshResult
from bcvrates.core.queries import CurrencyQueries
from bcvrates.core.refresh import RefreshOrchestrator
from bcvrates.core.repository import CurrencyRepository
from bcvrates.core.scheduler import Scheduler
from bcvrates.scrapers.bcv import BCVClient


class CurrencyService:
    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        queries: CurrencyQueries,
        scheduler: Scheduler,
        refresh_deadline: float = config.REFRESH_DEADLINE_S,
    ):
        self.orchestrator     = orchestrator
        self.queries          = queries
        self.scheduler        = scheduler
        self.refresh_deadline = refresh_deadline

    @property
    def cache(self) -> TTLCache[bytes]:
        return self.queries.cache

    @property
    def repository(self) -> CurrencyRepository:
        return self.queries.repository

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.cache.close()

    # ── Operations ────────────────────────────────────────────────────────────

    async def refresh(self, force: bool = False, deadline: float | None = None) -> RefreshResult:
        if deadline is None:
            deadline = self.refresh_deadline
        return await self.orchestrator.refresh(force=force, deadline=deadline)

    def get_currency(self, currency_id: str, use_cache: bool = True) -> CurrencyResult:
        return self.queries.get_one(currency_id, use_cache=use_cache)

    def get_all_currencies(self, use_cache: bool = True, include_stale: bool = False) -> CurrencyListResult:
        return self.queries.get_all(use_cache=use_cache, include_stale=include_stale)

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def health(self) -> dict:
        last = self.orchestrator.last_result
        return {
            "status":          "healthy" if self.repository.count() else "warming_up",
            "currencies":      self.repository.count(),
            "refresh_state":   self.orchestrator.state.value,
            "refresh_running": self.orchestrator.running,
            "last_refresh":    last.to_dict() if last else None,
            "scheduler":       self.scheduler.running,
            "cache":           self.get_cache_stats().to_dict(),
        }


def build_service(client: BCVClient | None = None) -> CurrencyService:
    """Wire a service from config. Pass `client` to swap the BCV transport."""
    client     = client or BCVClient(config.BCV_BASE_URL, config.HTTP_TIMEOUT_S)
    repository = CurrencyRepository()
    cache: TTLCache[bytes] = TTLCache()

    orchestrator = RefreshOrchestrator(
        client, repository, cache,
        anchors=config.BCV_ANCHORS,
        fetch_timeout=config.HTTP_TIMEOUT_S,
        min_interval=config.REFRESH_COOLDOWN_S,
    )
    queries = CurrencyQueries(
        repository, cache,
        currency_ttl=config.CURRENCY_CACHE_TTL_S,
        list_ttl=config.LIST_CACHE_TTL_S,
        freshness_window=timedelta(seconds=config.STALE_AFTER_S),
    )
    scheduler = Scheduler(
        orchestrator, cache,
        refresh_interval=config.REFRESH_INTERVAL_S,
        sweep_interval=config.CACHE_SWEEP_INTERVAL_S,
        refresh_deadline=config.REFRESH_DEADLINE_S,
    )
    return CurrencyService(orchestrator, queries, scheduler, refresh_deadline=config.REFRESH_DEADLINE_S)
