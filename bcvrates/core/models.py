"""
bcvrates/core/models.py
Currency snapshot, cache payload codec and the result shapes returned to the
HTTP layer. Snapshots are frozen — "updating" one means building a new one.
"""

import json
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from bcvrates.core.config import VET


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _vet_display(dt: datetime) -> str:
    return dt.astimezone(VET).strftime("%d %b %Y • %I:%M %p VET")


@dataclass(frozen=True)
class Currency:
    id:         str
    name:       str
    value:      float
    updated_at: datetime = field(default_factory=utc_now)
    source:     str = ""

    def is_valid(self) -> bool:
        return (
            bool(self.id)
            and bool(self.name)
            and isinstance(self.value, (int, float))
            and math.isfinite(self.value)
            and self.value > 0
        )

    def is_stale(self, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        """Older than max_age. Exactly max_age old still counts as fresh."""
        return (now or utc_now()) - self.updated_at > max_age

    def with_value(self, value: float) -> "Currency":
        return replace(self, value=value, updated_at=utc_now())

    def to_dict(self) -> dict:
        return {
            "id":              self.id,
            "name":            self.name,
            "value":           self.value,
            "updated_at":      self.updated_at.astimezone(timezone.utc).isoformat(),
            "updated_display": _vet_display(self.updated_at),
            "source":          self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Currency":
        return cls(
            id=data["id"],
            name=data["name"],
            value=float(data["value"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            source=data.get("source", ""),
        )


# ── Cache keys ────────────────────────────────────────────────────────────────
ALL_KEY       = "currencies:all"          # fresh-only list view
ALL_STALE_KEY = "currencies:all:stale"    # list view including stale entries
AGGREGATE_KEYS = (ALL_KEY, ALL_STALE_KEY)


def currency_key(currency_id: str) -> str:
    return f"currency:{currency_id}"


# ── Cache payload codec ───────────────────────────────────────────────────────
# The cache holds serialized copies, never the store's own objects.

def encode_currency(currency: Currency) -> bytes:
    return json.dumps(currency.to_dict()).encode("utf-8")


def decode_currency(payload: bytes) -> Currency:
    return Currency.from_dict(json.loads(payload))


def encode_currencies(currencies: list[Currency]) -> bytes:
    return json.dumps([c.to_dict() for c in currencies]).encode("utf-8")


def decode_currencies(payload: bytes) -> list[Currency]:
    return [Currency.from_dict(d) for d in json.loads(payload)]


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass
class RefreshResult:
    updated_count: int = 0
    updated_ids:   list[str] = field(default_factory=list)
    success:       bool = False
    message:       str = ""
    skipped:       bool = False
    error:         Optional[Exception] = None

    def to_dict(self) -> dict:
        return {
            "updated_count": self.updated_count,
            "currencies":    list(self.updated_ids),
            "success":       self.success,
            "message":       self.message,
            "skipped":       self.skipped,
        }


@dataclass
class CurrencyResult:
    currency:   Optional[Currency] = None
    from_cache: bool = False
    success:    bool = False
    message:    str = ""

    def to_dict(self) -> dict:
        return {
            "currency":   self.currency.to_dict() if self.currency else None,
            "from_cache": self.from_cache,
        }


@dataclass
class CurrencyListResult:
    currencies: list[Currency] = field(default_factory=list)
    from_cache: bool = False
    success:    bool = True
    message:    str = ""

    @property
    def count(self) -> int:
        return len(self.currencies)

    def to_dict(self) -> dict:
        return {
            "currencies": [c.to_dict() for c in self.currencies],
            "count":      self.count,
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True)
class CacheStats:
    hits:   int
    misses: int
    keys:   int

    def to_dict(self) -> dict:
        return {"hits": self.hits, "misses": self.misses, "keys": self.keys}
