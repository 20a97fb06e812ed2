"""
bcvrates/core/cache.py
═══════════════════════════════════════════════════════════════════════════
Concurrency-safe in-memory TTL cache.
  • set() always overwrites; expires_at = now + ttl (ttl must be > 0)
  • get()/exists() take the shared lock → readers never block each other
  • An expired entry found by get()/exists() counts as a miss and is removed
    in the background; the caller does not wait for the removal
  • sweep() drops every expired entry (driven by the periodic sweeper)
  • Mutations (set/delete/clear/eviction/sweep) take the exclusive lock
  • Invalidation is by key deletion only — last write wins
═══════════════════════════════════════════════════════════════════════════
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from bcvrates.core.errors import InvalidKeyError, InvalidTTLError
from bcvrates.core.locks import RWLock
from bcvrates.core.models import CacheStats

log = logging.getLogger("cache")

V = TypeVar("V")


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value:      V
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise InvalidKeyError(f"cache key must be a non-empty string, got {key!r}")


class TTLCache(Generic[V]):
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock  = clock
        self._store: dict[str, _Entry[V]] = {}
        self._lock   = RWLock()
        # counters move under the shared lock, so they get their own mutex
        self._stats_lock = threading.Lock()
        self._hits   = 0
        self._misses = 0
        self._evictor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-evict")

    # ── Writes ────────────────────────────────────────────────────────────────

    def set(self, key: str, value: V, ttl: float) -> None:
        _check_key(key)
        if ttl <= 0:
            raise InvalidTTLError(f"ttl must be > 0, got {ttl!r}")
        with self._lock.write_locked():
            self._store[key] = _Entry(value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        _check_key(key)
        with self._lock.write_locked():
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock.write_locked():
            self._store = {}
            with self._stats_lock:
                self._hits = 0
                self._misses = 0

    def sweep(self) -> int:
        """Remove every expired entry. Returns how many were dropped."""
        with self._lock.write_locked():
            now  = self._clock()
            dead = [k for k, e in self._store.items() if e.expired(now)]
            for k in dead:
                del self._store[k]
        if dead:
            log.debug(f"Swept {len(dead)} expired entries")
        return len(dead)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[V]:
        _check_key(key)
        with self._lock.read_locked():
            entry = self._store.get(key)
            expired = entry is not None and entry.expired(self._clock())

        if entry is None or expired:
            with self._stats_lock:
                self._misses += 1
            if expired:
                self._schedule_eviction(key, entry)
            return None

        with self._stats_lock:
            self._hits += 1
        return entry.value

    def exists(self, key: str) -> bool:
        _check_key(key)
        with self._lock.read_locked():
            entry = self._store.get(key)
            if entry is None:
                return False
            expired = entry.expired(self._clock())
        if expired:
            self._schedule_eviction(key, entry)
            return False
        return True

    def stats(self) -> CacheStats:
        with self._lock.read_locked():
            keys = len(self._store)
        with self._stats_lock:
            return CacheStats(hits=self._hits, misses=self._misses, keys=keys)

    # ── Lazy eviction ─────────────────────────────────────────────────────────

    def _schedule_eviction(self, key: str, seen: _Entry[V]) -> None:
        try:
            self._evictor.submit(self._evict, key, seen)
        except RuntimeError:
            # executor already shut down; the next sweep or set() takes care of it
            pass

    def _evict(self, key: str, seen: _Entry[V]) -> None:
        with self._lock.write_locked():
            # only drop the entry we saw expire, never a newer set()
            if self._store.get(key) is seen:
                del self._store[key]

    def close(self) -> None:
        """Stop the evictor, waiting for pending removals."""
        self._evictor.shutdown(wait=True)
