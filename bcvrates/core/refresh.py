"""
bcvrates/core/refresh.py
═══════════════════════════════════════════════════════════════════════════════
Refresh orchestration: BCV page → repository, then cache invalidation.

One attempt walks:

  IDLE → CHECKING_LIVENESS → FETCHING → EXTRACTING → PERSISTING → DONE
                 │               │            │
                 └───────────────┴────────────┴──→ FAILED

  • Liveness/fetch failure   → FAILED, repository and cache untouched
  • Zero rates extracted     → FAILED
  • Some anchors broken      → carry on with the ones that parsed
  • A rejected save          → logged, next currency still saved
  • After each save          → drop that currency's cache key
  • After the whole batch    → drop each aggregate (list) key exactly once

Guarantees:
  1. Single-flight — concurrent refresh() calls join the attempt in progress
     and share its result; runs never overlap
  2. Deadline — a caller that runs out of time gets a timeout result; the
     shared attempt keeps going for everyone else
  3. Cooldown — a non-forced refresh right after a successful one is skipped
═══════════════════════════════════════════════════════════════════════════════
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Mapping

from bcvrates.core.cache import TTLCache
from bcvrates.core.config import BCV_ANCHORS, HTTP_TIMEOUT_S, REFRESH_COOLDOWN_S
from bcvrates.core.errors import (
    InvalidEntityError,
    RefreshTimeoutError,
    SourceUnavailableError,
    TotalExtractionFailure,
)
from bcvrates.core.models import AGGREGATE_KEYS, Currency, RefreshResult, currency_key
from bcvrates.core.repository import CurrencyRepository
from bcvrates.scrapers.bcv import BCVClient
from bcvrates.scrapers.extractor import extract_rates

log = logging.getLogger("refresh")


class RefreshState(str, Enum):
    IDLE              = "idle"
    CHECKING_LIVENESS = "checking_liveness"
    FETCHING          = "fetching"
    EXTRACTING        = "extracting"
    PERSISTING        = "persisting"
    DONE              = "done"
    FAILED            = "failed"


_FAILURE_LABELS = {
    RefreshState.CHECKING_LIVENESS: "BCV not available",
    RefreshState.FETCHING:          "Could not fetch BCV page",
    RefreshState.EXTRACTING:        "Could not extract rates",
}


class RefreshOrchestrator:
    def __init__(
        self,
        client: BCVClient,
        repository: CurrencyRepository,
        cache: TTLCache[bytes],
        anchors: Mapping[str, tuple[str, str]] = BCV_ANCHORS,
        fetch_timeout: float = HTTP_TIMEOUT_S,
        min_interval: float = REFRESH_COOLDOWN_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client        = client
        self.repository    = repository
        self.cache         = cache
        self.anchors       = dict(anchors)
        self.fetch_timeout = fetch_timeout
        self.min_interval  = min_interval
        self._clock        = clock

        self.state: RefreshState = RefreshState.IDLE
        self.last_result: RefreshResult | None = None
        self._last_success_at: float | None = None
        self._inflight: asyncio.Task | None = None

    # ── Public entry point ────────────────────────────────────────────────────

    async def refresh(self, force: bool = False, deadline: float | None = None) -> RefreshResult:
        """
        Run (or join) a refresh attempt.
        `deadline` is in seconds; None waits for the attempt to finish.
        """
        if not force and self._cooling_down():
            age = self._clock() - self._last_success_at
            log.info(f"Refresh skipped — last successful run {age:.0f}s ago")
            return RefreshResult(
                success=True,
                skipped=True,
                message=f"Rates were refreshed {age:.0f}s ago; use force to refresh now",
            )

        task = self._inflight
        if task is None or task.done():
            log.info(f"Starting refresh (force={force})")
            task = asyncio.create_task(self._run())
            task.add_done_callback(self._on_done)
            self._inflight = task
        else:
            log.info("Refresh already running — joining it")

        if deadline is None:
            return await asyncio.shield(task)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=deadline)
        except asyncio.TimeoutError:
            err = RefreshTimeoutError(deadline)
            log.error(f"Refresh timed out: {err}")
            return RefreshResult(success=False, message=str(err), error=err)

    async def cancel(self) -> None:
        """Abandon the attempt in progress, if any (used on shutdown)."""
        task = self._inflight
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            log.info("In-flight refresh cancelled")

    @property
    def running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ── One attempt ───────────────────────────────────────────────────────────

    async def _run(self) -> RefreshResult:
        t0 = self._clock()
        try:
            currencies = await self._collect()
        except (SourceUnavailableError, TotalExtractionFailure) as ex:
            label = _FAILURE_LABELS.get(self.state, "Refresh failed")
            self.state = RefreshState.FAILED
            log.error(f"{label}: {ex}")
            return self._finish(RefreshResult(success=False, message=f"{label}: {ex}", error=ex))
        except BaseException:
            self.state = RefreshState.FAILED
            raise

        self.state = RefreshState.PERSISTING
        updated = self._persist(currencies)
        self.state = RefreshState.DONE
        if updated:
            self._last_success_at = self._clock()

        elapsed = self._clock() - t0
        log.info(f"Refresh done in {elapsed:.1f}s: {updated or 'nothing'} updated")
        return self._finish(RefreshResult(
            updated_count=len(updated),
            updated_ids=updated,
            success=True,
            message=f"Updated {len(updated)} currencies",
        ))

    async def _collect(self) -> list[Currency]:
        self.state = RefreshState.CHECKING_LIVENESS
        await self.client.check_live(self.fetch_timeout)

        self.state = RefreshState.FETCHING
        document = await self.client.fetch_document(self.fetch_timeout)

        self.state = RefreshState.EXTRACTING
        report = extract_rates(document, self.anchors)
        for err in report.errors:
            log.warning(f"Extraction: {err}")
        if not report.rates:
            raise TotalExtractionFailure(report.errors)
        log.debug(f"Extracted {report.values}")
        return report.to_currencies(source=self.client.base_url)

    def _persist(self, currencies: list[Currency]) -> list[str]:
        updated: list[str] = []
        for currency in currencies:
            try:
                self.repository.save(currency)
            except InvalidEntityError as ex:
                log.warning(f"Skipping {currency.id}: {ex}")
                continue
            self.cache.delete(currency_key(currency.id))
            updated.append(currency.id)
        for key in AGGREGATE_KEYS:
            self.cache.delete(key)
        return updated

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _cooling_down(self) -> bool:
        if self.min_interval <= 0 or self._last_success_at is None:
            return False
        return self._clock() - self._last_success_at < self.min_interval

    def _finish(self, result: RefreshResult) -> RefreshResult:
        self.last_result = result
        return result

    def _on_done(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        if task.cancelled():
            return
        ex = task.exception()
        if ex is not None:
            log.error(f"Refresh crashed: {ex!r}")
