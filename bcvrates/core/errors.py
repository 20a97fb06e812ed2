"""
bcvrates/core/errors.py
Error taxonomy.
  • SourceUnavailableError  → BCV down or slow; prior data is kept
  • ExtractionError         → one anchor could not be read; siblings continue
  • TotalExtractionFailure  → nothing could be read; the refresh run fails
  • InvalidEntityError      → rejected by the store; siblings continue
  • CacheError              → misuse of the cache API (bad key / ttl)
  • NotFoundError           → unknown currency id; a normal outcome
"""


class RatesError(Exception):
    """Base class for every error raised by this package."""


# ── Source ────────────────────────────────────────────────────────────────────

class SourceUnavailableError(RatesError):
    pass


class LivenessError(SourceUnavailableError):
    pass


class FetchError(SourceUnavailableError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


# ── Extraction ────────────────────────────────────────────────────────────────

class ExtractionError(RatesError):
    def __init__(self, anchor: str, reason: str):
        super().__init__(f"{anchor}: {reason}")
        self.anchor = anchor
        self.reason = reason


class TotalExtractionFailure(RatesError):
    def __init__(self, errors: list[ExtractionError]):
        detail = "; ".join(str(e) for e in errors) or "empty document"
        super().__init__(f"no rates could be extracted ({detail})")
        self.errors = errors


# ── Stores ────────────────────────────────────────────────────────────────────

class InvalidEntityError(RatesError):
    pass


class NotFoundError(RatesError):
    def __init__(self, currency_id: str):
        super().__init__(f"currency {currency_id!r} not found")
        self.currency_id = currency_id


class CacheError(RatesError):
    pass


class InvalidTTLError(CacheError):
    pass


class InvalidKeyError(CacheError):
    pass


# ── Refresh ───────────────────────────────────────────────────────────────────

class RefreshTimeoutError(RatesError):
    def __init__(self, deadline: float):
        super().__init__(f"refresh did not finish within {deadline:g}s")
        self.deadline = deadline
