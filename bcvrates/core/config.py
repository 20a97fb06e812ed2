"""
bcvrates/core/config.py
═══════════════════════════════════════════════════════════════════════════════
SOURCE:

  bcv.org.ve (home page)  →  official reference rates, server-rendered HTML
                              one <div id="{anchor}"> per currency, value in
                              the first <strong> below it, comma decimals:
                                <div id="dolar"> ... <strong> 36,53180000 </strong>

Every value below can be overridden from the environment. Durations are
seconds. Malformed numbers fall back to the default (with a warning).
═══════════════════════════════════════════════════════════════════════════════
"""

import logging
import os

import pytz

log = logging.getLogger("config")

VET = pytz.timezone("America/Caracas")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not a number — using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


# ── BCV source ────────────────────────────────────────────────────────────────
BCV_BASE_URL   = os.environ.get("BCV_BASE_URL", "https://www.bcv.org.ve/")
BCV_USER_AGENT = os.environ.get("BCV_USER_AGENT", "BCV-Currency-API/1.0")
# bcv.org.ve has served incomplete certificate chains in the past
BCV_VERIFY_SSL = _env_bool("BCV_VERIFY_SSL", True)
HTTP_TIMEOUT_S = _env_float("HTTP_TIMEOUT_S", 30.0)

# anchor id on the page → (currency code, display name), in publication order
BCV_ANCHORS: dict[str, tuple[str, str]] = {
    "euro":  ("EUR", "Euro"),
    "dolar": ("USD", "Dólar Americano"),
    "yuan":  ("CNY", "Yuan"),
    "lira":  ("TRY", "Lira Turca"),
    "rublo": ("RUB", "Rublo Ruso"),
}

# ── Refresh ───────────────────────────────────────────────────────────────────
REFRESH_INTERVAL_S = _env_float("REFRESH_INTERVAL_S", 15 * 60)
REFRESH_DEADLINE_S = _env_float("REFRESH_DEADLINE_S", 60.0)
REFRESH_COOLDOWN_S = _env_float("REFRESH_COOLDOWN_S", 60.0)   # non-forced refreshes

# ── Cache / queries ───────────────────────────────────────────────────────────
CURRENCY_CACHE_TTL_S   = _env_float("CURRENCY_CACHE_TTL_S", 5 * 60)
LIST_CACHE_TTL_S       = _env_float("LIST_CACHE_TTL_S", 2 * 60)
STALE_AFTER_S          = _env_float("STALE_AFTER_S", 30 * 60)
CACHE_SWEEP_INTERVAL_S = _env_float("CACHE_SWEEP_INTERVAL_S", 5 * 60)

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── Server ────────────────────────────────────────────────────────────────────
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(_env_float("PORT", 8000))
