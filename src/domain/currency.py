# src/domain/currency.py

import os
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional

from babel.core import UnknownLocaleError
from babel.numbers import UnknownCurrencyError, format_currency

from src.config import BASE_CURRENCY, FALLBACK_CURRENCY


@dataclass(frozen=True)
class Currency:
    code: str
    symbol: str
    flag: str
    name: str
    decimals: int
    locale: str


CURRENCIES: Dict[str, Currency] = {
    "INR": Currency("INR", "₹", "🇮🇳", "Indian Rupee", 2, "en-IN"),
    "USD": Currency("USD", "$", "🇺🇸", "US Dollar", 2, "en-US"),
    "AED": Currency("AED", "AED", "🇦🇪", "UAE Dirham", 2, "en-AE"),
    "EUR": Currency("EUR", "€", "🇪🇺", "Euro", 2, "de-DE"),
    "GBP": Currency("GBP", "£", "🇬🇧", "British Pound", 2, "en-GB"),
}

SUPPORTED_CURRENCIES = tuple(CURRENCIES)

# Rates relative to BASE_CURRENCY (INR = 1.0).
EXCHANGE_RATES: Dict[str, float] = {
    "INR": 1.0,
    "USD": 0.012,
    "AED": 0.044,
    "EUR": 0.011,
    "GBP": 0.0095,
}

EUROPEAN_REGIONS = frozenset({"DE", "FR", "IT", "ES", "NL", "AT", "BE", "FI", "PT", "IE"})

_REGION_CURRENCIES = {
    "IN": "INR",
    "US": "USD",
    "AE": "AED",
    "GB": "GBP",
}


def is_supported(code: Optional[str]) -> bool:
    return code in CURRENCIES


def decimals_for(code: str) -> int:
    info = CURRENCIES.get(code)
    return info.decimals if info else 2


@dataclass(frozen=True)
class Money:
    """
    Amount in the smallest unit of a currency (paise, cents).
    Only converted to major units at the rendering step.
    """

    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Money amount must be an int, got {type(self.amount)}")
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def scale(self, quantity: int) -> "Money":
        if quantity < 0:
            raise ValueError("Quantity cannot be negative")
        return Money(amount=self.amount * quantity, currency=self.currency)


class ExchangeRateTable:
    """
    Rates for every currency against one base currency.
    A missing rate is treated as identity (1.0).
    """

    def __init__(
        self,
        rates: Optional[Mapping[str, float]] = None,
        base_currency: str = BASE_CURRENCY,
    ):
        self.base_currency = base_currency
        self._rates = dict(EXCHANGE_RATES if rates is None else rates)

    def rate(self, code: str) -> float:
        return self._rates.get(code, 1.0)


@dataclass(frozen=True)
class PriceBadge:
    currency: str
    flag: str
    amount: float
    formatted: str

    def __str__(self) -> str:
        return f"{self.flag} {self.formatted}".strip()


class CurrencyConversionEngine:
    """
    Pure conversion and formatting.

    Conversions always pivot through the base currency:
    amount / rate_from * rate_to. Nothing here rounds; only
    format() rounds, to the currency's declared decimals.
    """

    def __init__(
        self,
        rates: Optional[ExchangeRateTable] = None,
        fallback_currency: str = FALLBACK_CURRENCY,
    ):
        self.rates = rates or ExchangeRateTable()
        self.fallback_currency = fallback_currency

    def convert_value(self, value: float, from_currency: str, to_currency: str) -> float:
        if from_currency == to_currency or not is_supported(to_currency):
            return value

        in_base = value / self.rates.rate(from_currency)
        return in_base * self.rates.rate(to_currency)

    def convert(self, amount: Money, to_currency: str) -> float:
        """
        Returns the amount in major units of to_currency.
        Unsupported targets are a no-op in the amount's own currency.
        """
        target = to_currency if is_supported(to_currency) else amount.currency
        minor = self.convert_value(float(amount.amount), amount.currency, target)
        return minor / (10 ** decimals_for(target))

    def format(self, amount: float, currency: str) -> str:
        info = CURRENCIES.get(currency)
        if info is None:
            return f"{currency} {amount:.2f}"

        try:
            return format_currency(
                amount,
                info.code,
                locale=info.locale.replace("-", "_"),
            )
        except (UnknownLocaleError, UnknownCurrencyError, ValueError):
            return f"{info.symbol}{amount:.{info.decimals}f}"

    def price_badge(self, amount: Money, display_currency: str) -> PriceBadge:
        if not is_supported(display_currency):
            display_currency = amount.currency

        value = self.convert(amount, display_currency)
        info = CURRENCIES.get(display_currency)
        return PriceBadge(
            currency=display_currency,
            flag=info.flag if info else "",
            amount=value,
            formatted=self.format(value, display_currency),
        )

    def to_minor_units(self, value: float, currency: str) -> int:
        # Wire boundary only: the gateway needs integer minor units.
        scaled = Decimal(str(value)) * (10 ** decimals_for(currency))
        return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def detect_preferred_currency(self, locale_tag: Optional[str] = None) -> str:
        """
        Derives a default currency from a locale tag such as
        "en-IN" or "en_GB.UTF-8". Without a tag the process
        environment (LC_ALL, LC_MESSAGES, LANG) is read.
        """
        if locale_tag is None:
            locale_tag = (
                os.getenv("LC_ALL")
                or os.getenv("LC_MESSAGES")
                or os.getenv("LANG")
                or ""
            )

        region = _region_from_locale(locale_tag)
        if region in _REGION_CURRENCIES:
            return _REGION_CURRENCIES[region]
        if region in EUROPEAN_REGIONS:
            return "EUR"
        return self.fallback_currency


def _region_from_locale(locale_tag: str) -> str:
    tag = locale_tag.split(".", 1)[0].split("@", 1)[0]
    parts = tag.replace("-", "_").split("_")
    if len(parts) < 2:
        return ""
    return parts[-1].upper()
