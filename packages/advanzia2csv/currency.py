"""ISO 4217 currency codes and their minor-unit counts.

Only currencies with a fixed minor unit are listed. The table covers the
currencies an Advanzia card statement can settle or show in foreign-exchange
lines; extend it when a statement carries a code that is missing here.
"""

from __future__ import annotations

from decimal import Decimal

from .errors import UnsupportedCurrencyError

MINOR_UNITS: dict[str, int] = {
    # Two decimals
    "AUD": 2,
    "BGN": 2,
    "BRL": 2,
    "CAD": 2,
    "CHF": 2,
    "CNY": 2,
    "CZK": 2,
    "DKK": 2,
    "EUR": 2,
    "GBP": 2,
    "HKD": 2,
    "HRK": 2,
    "HUF": 2,
    "ILS": 2,
    "INR": 2,
    "MAD": 2,
    "MXN": 2,
    "NOK": 2,
    "NZD": 2,
    "PLN": 2,
    "RON": 2,
    "RSD": 2,
    "SEK": 2,
    "SGD": 2,
    "THB": 2,
    "TRY": 2,
    "USD": 2,
    "ZAR": 2,
    # Zero decimals
    "CLP": 0,
    "ISK": 0,
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    # Three decimals
    "BHD": 3,
    "JOD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
}


def normalize_currency_code(code: str | None) -> str:
    """Return the upper-cased ISO code or raise ``UnsupportedCurrencyError``."""

    cleaned = (code or "").strip().upper()
    if cleaned not in MINOR_UNITS:
        raise UnsupportedCurrencyError("unrecognized currency code", raw_value=code)
    return cleaned


def minor_units(code: str) -> int:
    """Number of minor-unit digits for ``code`` (e.g. 2 for EUR)."""

    return MINOR_UNITS[normalize_currency_code(code)]


def quantum(code: str) -> Decimal:
    """The smallest representable step for ``code`` (``Decimal('0.01')`` for EUR)."""

    return Decimal(1).scaleb(-minor_units(code))


__all__ = ["MINOR_UNITS", "minor_units", "normalize_currency_code", "quantum"]
