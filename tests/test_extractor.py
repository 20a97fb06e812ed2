"""
Extractor tests against BCV-shaped HTML.
"""

import pytest

from bcvrates.core.config import BCV_ANCHORS
from bcvrates.core.errors import ExtractionError
from bcvrates.scrapers.extractor import extract_rates, parse_rate

from conftest import BASE_URL, EXAMPLE_PAGE, FIXED_NOW, bcv_page

ANCHORS = {"euro": ("EUR", "Euro"), "dolar": ("USD", "Dólar Americano")}


class TestParseRate:

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("144,37320000", 144.3732),
            ("  168,34059493 \n", 168.34059493),
            ("36", 36.0),
            ("0,00", 0.0),
        ],
    )
    def test_comma_decimals(self, text, expected):
        assert parse_rate(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "abc", "-1,5", "nan", "inf", "1.234,56", "1e3"])
    def test_rejects_non_decimal(self, text):
        with pytest.raises(ExtractionError) as exc:
            parse_rate(text, "euro")
        assert exc.value.anchor == "euro"


class TestExtractRates:

    def test_example_document(self):
        report = extract_rates(EXAMPLE_PAGE, ANCHORS)
        assert report.errors == []
        assert report.values == {"euro": 144.3732, "dolar": 168.34059493}

    def test_accepts_bytes(self):
        report = extract_rates(EXAMPLE_PAGE.encode("utf-8"), ANCHORS)
        assert report.values["euro"] == 144.3732

    def test_broken_anchor_does_not_abort_others(self):
        page = bcv_page(euro="144,37320000", dolar="N/D")
        report = extract_rates(page, ANCHORS)
        assert report.values == {"euro": 144.3732}
        assert [e.anchor for e in report.errors] == ["dolar"]

    def test_missing_anchor_reported(self):
        report = extract_rates(bcv_page(dolar="168,34059493"), ANCHORS)
        assert [r.currency_id for r in report.rates] == ["USD"]
        assert report.errors[0].anchor == "euro"
        assert "not found" in report.errors[0].reason

    def test_anchor_without_strong_reported(self):
        page = '<html><body><div id="euro"><span>144,37</span></div></body></html>'
        report = extract_rates(page, {"euro": ("EUR", "Euro")})
        assert report.rates == []
        assert "<strong>" in report.errors[0].reason

    def test_empty_strong_reported(self):
        page = '<html><body><div id="euro"><strong>   </strong></div></body></html>'
        report = extract_rates(page, {"euro": ("EUR", "Euro")})
        assert "no numeric text" in report.errors[0].reason

    def test_order_follows_anchor_mapping(self):
        page = bcv_page(dolar="168,34059493", rublo="1,90", euro="144,37320000")
        report = extract_rates(page, BCV_ANCHORS)
        assert [r.currency_id for r in report.rates] == ["EUR", "USD", "RUB"]
        assert {e.anchor for e in report.errors} == {"yuan", "lira"}

    def test_to_currencies(self):
        report = extract_rates(EXAMPLE_PAGE, ANCHORS)
        currencies = report.to_currencies(source=BASE_URL, now=FIXED_NOW)
        eur, usd = currencies
        assert (eur.id, eur.name, eur.value) == ("EUR", "Euro", 144.3732)
        assert (usd.id, usd.value) == ("USD", 168.34059493)
        assert all(c.updated_at == FIXED_NOW and c.source == BASE_URL for c in currencies)
