"""
bcvrates/core/queries.py
Read path: cache first, repository on a miss, then repopulate the cache.
  • unknown id           → success=False result, never an exception
  • stale entries        → filtered before returning and before caching
  • cached single rates  → never outlive their own freshness window
Owns no data: the repository holds the snapshots, the cache holds short-lived
serialized copies.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from bcvrates.core.cache import TTLCache
from bcvrates.core.config import CURRENCY_CACHE_TTL_S, LIST_CACHE_TTL_S, STALE_AFTER_S
from bcvrates.core.errors import NotFoundError
from bcvrates.core.models import (
    ALL_KEY,
    ALL_STALE_KEY,
    Currency,
    CurrencyListResult,
    CurrencyResult,
    currency_key,
    decode_currencies,
    decode_currency,
    encode_currencies,
    encode_currency,
    utc_now,
)
from bcvrates.core.repository import CurrencyRepository

log = logging.getLogger("queries")


class CurrencyQueries:
    def __init__(
        self,
        repository: CurrencyRepository,
        cache: TTLCache[bytes],
        currency_ttl: float = CURRENCY_CACHE_TTL_S,
        list_ttl: float = LIST_CACHE_TTL_S,
        freshness_window: timedelta = timedelta(seconds=STALE_AFTER_S),
        now: Callable[[], datetime] = utc_now,
    ):
        self.repository       = repository
        self.cache            = cache
        self.currency_ttl     = currency_ttl
        self.list_ttl         = list_ttl
        self.freshness_window = freshness_window
        self._now             = now

    def get_one(
        self,
        currency_id: str,
        use_cache: bool = True,
        freshness_window: timedelta | None = None,
    ) -> CurrencyResult:
        currency_id = (currency_id or "").strip().upper()
        if not currency_id:
            return CurrencyResult(success=False, message="Currency id is required")
        key = currency_key(currency_id)

        if use_cache:
            payload = self.cache.get(key)
            if payload is not None:
                return CurrencyResult(
                    currency=decode_currency(payload),
                    from_cache=True,
                    success=True,
                    message="Currency served from cache",
                )

        try:
            currency = self.repository.find_by_id(currency_id)
        except NotFoundError:
            log.debug(f"Currency {currency_id!r} not found")
            return CurrencyResult(success=False, message=f"Currency {currency_id!r} not found")

        if use_cache:
            window = self.freshness_window if freshness_window is None else freshness_window
            ttl = self._bounded_ttl(currency, window)
            if ttl > 0:
                self.cache.set(key, encode_currency(currency), ttl)

        return CurrencyResult(
            currency=currency,
            from_cache=False,
            success=True,
            message="Currency served from repository",
        )

    def get_all(
        self,
        use_cache: bool = True,
        include_stale: bool = False,
        freshness_window: timedelta | None = None,
    ) -> CurrencyListResult:
        window = self.freshness_window if freshness_window is None else freshness_window
        key    = ALL_STALE_KEY if include_stale else ALL_KEY
        # the fresh view is cached for the default window only
        cacheable = use_cache and (include_stale or window == self.freshness_window)

        if cacheable:
            payload = self.cache.get(key)
            if payload is not None:
                currencies = decode_currencies(payload)
                if not include_stale:
                    # entries may have aged past the window while cached
                    currencies = self._fresh_only(currencies, window)
                return CurrencyListResult(
                    currencies=currencies,
                    from_cache=True,
                    message="Currencies served from cache",
                )

        currencies = sorted(self.repository.find_all(), key=lambda c: c.id)
        if not include_stale:
            currencies = self._fresh_only(currencies, window)

        if cacheable:
            self.cache.set(key, encode_currencies(currencies), self.list_ttl)

        return CurrencyListResult(
            currencies=currencies,
            from_cache=False,
            message="Currencies served from repository",
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _fresh_only(self, currencies: list[Currency], window: timedelta) -> list[Currency]:
        now = self._now()
        return [c for c in currencies if not c.is_stale(window, now)]

    def _bounded_ttl(self, currency: Currency, window: timedelta) -> float:
        remaining = (currency.updated_at + window - self._now()).total_seconds()
        return min(self.currency_ttl, remaining)
