"""
Tests for multi-locale money parsing.
"""

from decimal import Decimal

from yachtexpense.utils.money import (
    MoneyFormat,
    format_money,
    parse_amount,
    parse_money,
    validate_amount,
)


class TestParseMoney:
    """Comma and dot decimal separators, thousands separators, symbols."""

    def test_european_decimal_comma(self):
        assert parse_money("45,50") == Decimal("45.50")

    def test_european_thousands(self):
        assert parse_money("1.234,56") == Decimal("1234.56")

    def test_us_thousands(self):
        assert parse_money("1,234.56") == Decimal("1234.56")

    def test_strips_currency_symbol_and_code(self):
        assert parse_money("€ 45,50") == Decimal("45.50")
        assert parse_money("45.50 EUR") == Decimal("45.50")

    def test_format_hint_overrides_detection(self):
        assert parse_money("1,234", MoneyFormat.US) == Decimal("1234")
        assert parse_money("1,234", MoneyFormat.EUROPEAN) == Decimal("1.234")

    def test_rejects_garbage_and_negatives(self):
        assert parse_money("") is None
        assert parse_money("abc") is None
        assert parse_money("-5,00") is None
        assert parse_money(None) is None


class TestParseAmount:
    """Range validation for receipt totals."""

    def test_quantizes_to_cents(self):
        assert parse_amount("7,5") == Decimal("7.50")

    def test_lower_bound_inclusive(self):
        assert parse_amount("0,10") == Decimal("0.10")
        assert parse_amount("0,09") is None

    def test_upper_bound_inclusive(self):
        assert parse_amount("9999,99") == Decimal("9999.99")
        assert parse_amount("10000,00") is None

    def test_validate_rejects_non_finite(self):
        assert validate_amount(Decimal("NaN")) is None


class TestFormatMoney:

    def test_formats_euro(self):
        assert format_money(Decimal("45.5")) == "€45.50"

    def test_missing_amount(self):
        assert format_money(None) == "N/A"
