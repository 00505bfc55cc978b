# tests/unit/test_currency.py

import pytest

from src.domain.currency import (
    CurrencyConversionEngine,
    ExchangeRateTable,
    Money,
    SUPPORTED_CURRENCIES,
)


# ---------------------
# CONVERSION
# ---------------------

def test_same_currency_is_identity(currency_engine):
    assert currency_engine.convert_value(1234.5, "USD", "USD") == 1234.5


@pytest.mark.parametrize("target", ["USD", "AED", "EUR", "GBP"])
def test_round_trip_through_base_within_epsilon(currency_engine, target):
    there = currency_engine.convert_value(4900.0, "INR", target)
    back = currency_engine.convert_value(there, target, "INR")

    assert back == pytest.approx(4900.0, rel=1e-9)


def test_conversion_pivots_through_base(currency_engine):
    usd = currency_engine.convert_value(100.0, "EUR", "USD")

    assert usd == pytest.approx(100.0 / 0.011 * 0.012)


def test_unsupported_target_is_noop(currency_engine):
    assert currency_engine.convert_value(50.0, "INR", "JPY") == 50.0


def test_convert_money_returns_major_units(currency_engine):
    price = Money(amount=490000, currency="INR")

    assert currency_engine.convert(price, "INR") == 4900.0
    assert currency_engine.convert(price, "USD") == pytest.approx(58.8)
    assert currency_engine.convert(Money(amount=1500, currency="USD"), "JPY") == 15.0


def test_missing_rate_treated_as_identity():
    engine = CurrencyConversionEngine(rates=ExchangeRateTable({"INR": 1.0}))

    assert engine.convert_value(10.0, "INR", "USD") == 10.0


# ---------------------
# FORMATTING
# ---------------------

def test_format_is_locale_aware(currency_engine):
    inr = currency_engine.format(9800.0, "INR")
    eur = currency_engine.format(1234.5, "EUR")

    assert "₹" in inr
    assert "9,800.00" in inr
    assert "€" in eur
    assert "1.234,50" in eur


def test_format_unknown_currency_uses_code_prefix(currency_engine):
    assert currency_engine.format(12.5, "XYZ") == "XYZ 12.50"


def test_scaled_total_formats_like_major_amount(currency_engine):
    total = Money(amount=490000, currency="INR").scale(2)
    badge = currency_engine.price_badge(total, "INR")

    assert badge.formatted == currency_engine.format(9800.0, "INR")
    assert str(badge).startswith("🇮🇳")


def test_price_badge_falls_back_to_amount_currency(currency_engine):
    badge = currency_engine.price_badge(Money(amount=4900, currency="INR"), "JPY")

    assert badge.currency == "INR"
    assert badge.amount == 49.0


def test_to_minor_units_rounds_half_up(currency_engine):
    assert currency_engine.to_minor_units(58.8, "USD") == 5880
    assert currency_engine.to_minor_units(0.125, "USD") == 13


# ---------------------
# MONEY
# ---------------------

def test_money_rejects_negative_amount():
    with pytest.raises(ValueError):
        Money(amount=-1, currency="INR")


def test_money_rejects_float_amount():
    with pytest.raises(TypeError):
        Money(amount=49.0, currency="INR")


# ---------------------
# LOCALE DETECTION
# ---------------------

@pytest.mark.parametrize(
    "locale_tag, expected",
    [
        ("en-IN", "INR"),
        ("en_US.UTF-8", "USD"),
        ("ar-AE", "AED"),
        ("en_GB", "GBP"),
        ("de-DE", "EUR"),
        ("fr_FR.UTF-8@euro", "EUR"),
        ("ja-JP", "USD"),
        ("C", "USD"),
        ("", "USD"),
    ],
)
def test_detect_preferred_currency(currency_engine, locale_tag, expected):
    assert currency_engine.detect_preferred_currency(locale_tag) == expected


def test_detect_reads_process_locale(monkeypatch, currency_engine):
    monkeypatch.delenv("LC_ALL", raising=False)
    monkeypatch.delenv("LC_MESSAGES", raising=False)
    monkeypatch.setenv("LANG", "en_GB.UTF-8")

    assert currency_engine.detect_preferred_currency() == "GBP"


def test_supported_currency_set():
    assert set(SUPPORTED_CURRENCIES) == {"INR", "USD", "AED", "EUR", "GBP"}
