"""
bcvrates/scrapers/extractor.py
Pure HTML → rates extraction for the BCV home page. No I/O, no state.

Each published rate lives in its own block:

    <div id="euro"> ... <strong> 144,37320000 </strong> ... </div>

Anchors are looked up independently: a renamed or missing block only costs
that one rate, never the others.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

from bs4 import BeautifulSoup

from bcvrates.core.errors import ExtractionError
from bcvrates.core.models import Currency, utc_now

_DECIMAL = re.compile(r"^\d+(?:\.\d+)?$")


@dataclass(frozen=True)
class ExtractedRate:
    anchor:      str
    currency_id: str
    name:        str
    value:       float


@dataclass
class ExtractionReport:
    rates:  list[ExtractedRate] = field(default_factory=list)
    errors: list[ExtractionError] = field(default_factory=list)

    @property
    def values(self) -> dict[str, float]:
        return {r.anchor: r.value for r in self.rates}

    def to_currencies(self, source: str, now: Optional[datetime] = None) -> list[Currency]:
        ts = now or utc_now()
        return [
            Currency(id=r.currency_id, name=r.name, value=r.value, updated_at=ts, source=source)
            for r in self.rates
        ]


def parse_rate(text: str, anchor: str = "") -> float:
    """'  144,37320000 ' → 144.3732. Comma is the decimal separator."""
    cleaned = text.strip().replace(",", ".")
    if not _DECIMAL.match(cleaned):
        raise ExtractionError(anchor, f"not a decimal number: {text!r}")
    value = float(cleaned)
    if not math.isfinite(value) or value < 0:
        raise ExtractionError(anchor, f"out of range: {text!r}")
    return value


def _extract_one(soup: BeautifulSoup, anchor: str) -> float:
    container = soup.find(id=anchor)
    if container is None:
        raise ExtractionError(anchor, "anchor not found in document")
    strong = container.find("strong")
    if strong is None:
        raise ExtractionError(anchor, "no <strong> element under anchor")
    text = strong.get_text()
    if not text.strip():
        raise ExtractionError(anchor, "no numeric text under anchor")
    return parse_rate(text, anchor)


def extract_rates(
    document: bytes | str,
    anchors: Mapping[str, tuple[str, str]],
) -> ExtractionReport:
    """
    Extract every anchor of `anchors` (anchor → (currency id, display name)).
    Successful rates keep the order of `anchors`; failures are collected,
    never raised.
    """
    soup   = BeautifulSoup(document, "html.parser")
    report = ExtractionReport()
    for anchor, (currency_id, name) in anchors.items():
        try:
            value = _extract_one(soup, anchor)
        except ExtractionError as ex:
            report.errors.append(ex)
            continue
        report.rates.append(ExtractedRate(anchor, currency_id, name, value))
    return report
