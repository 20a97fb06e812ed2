"""
bcvrates/core/repository.py
Authoritative in-memory store: currency id → latest Currency snapshot.
  • save() replaces the whole snapshot or rejects it — never partial
  • rejected saves leave the previous snapshot untouched
  • snapshots are frozen, so handing them out cannot corrupt stored state;
    every list returned is a fresh one, taken at the instant of the call
"""

from datetime import datetime

from bcvrates.core.errors import InvalidEntityError, NotFoundError
from bcvrates.core.locks import RWLock
from bcvrates.core.models import Currency


class CurrencyRepository:
    def __init__(self) -> None:
        self._currencies: dict[str, Currency] = {}
        self._lock = RWLock()

    def save(self, currency: Currency) -> None:
        if currency is None:
            raise InvalidEntityError("currency cannot be None")
        if not currency.is_valid():
            raise InvalidEntityError(
                f"invalid currency id={currency.id!r} name={currency.name!r} value={currency.value!r}"
            )
        with self._lock.write_locked():
            self._currencies[currency.id] = currency

    def find_by_id(self, currency_id: str) -> Currency:
        if not currency_id:
            raise InvalidEntityError("id cannot be empty")
        with self._lock.read_locked():
            currency = self._currencies.get(currency_id)
        if currency is None:
            raise NotFoundError(currency_id)
        return currency

    def find_all(self) -> list[Currency]:
        with self._lock.read_locked():
            return list(self._currencies.values())

    def find_updated_since(self, since: datetime) -> list[Currency]:
        with self._lock.read_locked():
            return [c for c in self._currencies.values() if c.updated_at > since]

    def delete(self, currency_id: str) -> None:
        if not currency_id:
            raise InvalidEntityError("id cannot be empty")
        with self._lock.write_locked():
            self._currencies.pop(currency_id, None)

    def count(self) -> int:
        with self._lock.read_locked():
            return len(self._currencies)
