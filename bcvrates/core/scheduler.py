"""
bcvrates/core/scheduler.py
═══════════════════════════════════════════════════════════════════════════════
Background loops with strict guarantees:

  1. ONE scheduler instance running at a time (start() is idempotent)
  2. ONE refresh at a time (the orchestrator is single-flight)
  3. Failed refresh → last valid rates stay in place, loop keeps going
  4. Stop signal → no new tick starts; the tick in progress is abandoned
     (or allowed to finish) and stop() returns only once every loop exited

Loops:
  • refresh     (every REFRESH_INTERVAL_S, first run at startup → warm data)
  • cache-sweep (every CACHE_SWEEP_INTERVAL_S, drops expired cache entries)
═══════════════════════════════════════════════════════════════════════════════
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from bcvrates.core.cache import TTLCache
from bcvrates.core.config import CACHE_SWEEP_INTERVAL_S, REFRESH_DEADLINE_S, REFRESH_INTERVAL_S
from bcvrates.core.refresh import RefreshOrchestrator

log = logging.getLogger("scheduler")

Job = Callable[[], Awaitable[None]]


async def _tick(name: str, job: Job) -> None:
    t0 = time.time()
    try:
        await job()
    except Exception as ex:
        log.error(f"{name}: tick error (continuing): {ex!r}")
        return
    log.debug(f"{name}: tick complete in {time.time() - t0:.1f}s")


async def run_periodic(
    name: str,
    interval: float,
    job: Job,
    stop: asyncio.Event,
    run_immediately: bool = True,
) -> None:
    """Run `job` every `interval` seconds until `stop` is set."""
    log.info(f"{name}: started (every {interval:g}s)")
    if run_immediately and not stop.is_set():
        await _tick(name, job)
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            await _tick(name, job)
    log.info(f"{name}: stopped")


# ── Jobs ──────────────────────────────────────────────────────────────────────

def refresh_job(orchestrator: RefreshOrchestrator, deadline: float) -> Job:
    async def _job() -> None:
        result = await orchestrator.refresh(force=False, deadline=deadline)
        if result.success:
            log.info(f"Scheduled refresh: {result.message}")
        else:
            log.warning(f"Scheduled refresh failed: {result.message}")
    return _job


def sweep_job(cache: TTLCache) -> Job:
    async def _job() -> None:
        removed = cache.sweep()
        if removed:
            log.info(f"Cache sweep: {removed} expired entries removed")
    return _job


# ── Scheduler ─────────────────────────────────────────────────────────────────

class Scheduler:
    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        cache: TTLCache,
        refresh_interval: float = REFRESH_INTERVAL_S,
        sweep_interval: float = CACHE_SWEEP_INTERVAL_S,
        refresh_deadline: float = REFRESH_DEADLINE_S,
    ):
        self.orchestrator     = orchestrator
        self.cache            = cache
        self.refresh_interval = refresh_interval
        self.sweep_interval   = sweep_interval
        self.refresh_deadline = refresh_deadline
        self._stop  = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            log.warning("Scheduler already running — ignoring duplicate start")
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(run_periodic(
                "refresh", self.refresh_interval,
                refresh_job(self.orchestrator, self.refresh_deadline), self._stop,
            )),
            asyncio.create_task(run_periodic(
                "cache-sweep", self.sweep_interval,
                sweep_job(self.cache), self._stop, run_immediately=False,
            )),
        ]
        log.info("Scheduler started")

    async def stop(self, abandon_inflight: bool = True) -> None:
        self._stop.set()
        if abandon_inflight:
            await self.orchestrator.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        log.info("Scheduler stopped")
