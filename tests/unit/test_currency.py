"""Unit tests for currency normalisation, formatting and conversion."""

import pytest

from duely.services.currency import (
    CurrencyConverter,
    convert_to_annual,
    convert_to_monthly,
    format_currency,
    format_currency_with_frequency,
    frequency_suffix,
)


@pytest.mark.unit
class TestFrequencyNormalisation:
    """Tests for converting amounts between billing frequencies."""

    @pytest.mark.parametrize(
        "frequency,expected",
        [
            ("monthly", 120.0),
            ("yearly", 10.0),
            ("annual", 10.0),
            ("quarterly", 40.0),
            ("daily", 3600.0),
        ],
    )
    def test_convert_to_monthly(self, frequency: str, expected: float) -> None:
        assert convert_to_monthly(120, frequency) == pytest.approx(expected)

    def test_weekly_uses_average_weeks_per_month(self) -> None:
        assert convert_to_monthly(10, "weekly") == pytest.approx(43.3)

    def test_frequency_is_case_insensitive(self) -> None:
        assert convert_to_monthly(120, "YEARLY") == pytest.approx(10.0)

    def test_unknown_frequency_treated_as_monthly(self) -> None:
        assert convert_to_monthly(99, "fortnightly") == 99
        assert convert_to_annual(10, "fortnightly") == 120

    @pytest.mark.parametrize(
        "frequency,expected",
        [
            ("monthly", 120),
            ("yearly", 10),
            ("quarterly", 40),
            ("weekly", 520),
            ("daily", 3650),
        ],
    )
    def test_convert_to_annual(self, frequency: str, expected: float) -> None:
        assert convert_to_annual(10, frequency) == expected


@pytest.mark.unit
class TestFormatCurrency:
    """Tests for display formatting."""

    def test_usd_has_two_decimals(self) -> None:
        assert format_currency(9.99, "USD") == "$9.99"

    def test_idr_has_no_decimals_and_thousands_separator(self) -> None:
        assert format_currency(49000, "IDR") == "IDR 49,000"

    def test_jpy_has_no_decimals(self) -> None:
        assert format_currency(1500.4, "JPY") == "¥1,500"

    def test_lowercase_currency_code_accepted(self) -> None:
        assert format_currency(5, "usd") == "$5.00"

    def test_unknown_currency_uses_code_prefix(self) -> None:
        assert format_currency(12.5, "CHF") == "CHF 12.50"

    def test_negative_amount_keeps_sign_before_symbol(self) -> None:
        assert format_currency(-3.5, "USD") == "-$3.50"

    def test_with_frequency_suffix(self) -> None:
        assert format_currency_with_frequency(9.99, "monthly", "USD") == "$9.99/mo"
        assert format_currency_with_frequency(120000, "yearly", "IDR") == "IDR 120,000/yr"
        assert format_currency_with_frequency(5, "weekly", "USD") == "$5.00/wk"

    def test_unknown_frequency_has_no_suffix(self) -> None:
        assert format_currency_with_frequency(5, "sometimes", "USD") == "$5.00"

    @pytest.mark.parametrize(
        "frequency,suffix",
        [("Monthly", "/mo"), ("annual", "/yr"), ("quarterly", "/qtr"), ("daily", "/day"), ("hourly", "")],
    )
    def test_frequency_suffix(self, frequency: str, suffix: str) -> None:
        assert frequency_suffix(frequency) == suffix


@pytest.mark.unit
class TestCurrencyConverter:
    """Tests for the preloaded-rate converter."""

    def test_same_currency_rate_is_one(self) -> None:
        converter = CurrencyConverter()
        assert converter.get_rate("IDR", "idr") == 1.0
        assert converter.convert(100, "USD", "USD") == 100

    def test_convert_with_known_rate(self) -> None:
        converter = CurrencyConverter()
        converter.add_rate("usd", "idr", 16000)

        assert converter.get_rate("USD", "IDR") == 16000
        assert converter.convert(10, "USD", "IDR") == 160000

    def test_missing_rate_leaves_amount_unchanged(self) -> None:
        converter = CurrencyConverter({("USD", "IDR"): 16000})
        assert converter.convert(10, "EUR", "IDR") == 10

    def test_rates_are_directional(self) -> None:
        converter = CurrencyConverter({("USD", "IDR"): 16000})
        assert converter.get_rate("IDR", "USD") is None

    def test_missing_pairs_sorted_and_unique(self) -> None:
        converter = CurrencyConverter({("USD", "IDR"): 16000})
        missing = converter.missing_pairs(["usd", "gbp", "EUR", "GBP", "IDR"], "IDR")
        assert missing == ["EUR", "GBP"]
