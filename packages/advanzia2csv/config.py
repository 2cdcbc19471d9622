"""Runtime settings for the conversion pipeline.

The core never reads the process environment. Entry points build a
:class:`Settings` (``Settings.from_env()`` plus command-line overrides) and
pass the relevant part to each stage explicitly.

Environment variables (all optional):

- ``ADVANZIA2CSV_CURRENCY``: currency assumed when a statement has no
  currency column (default ``EUR``).
- ``ADVANZIA2CSV_YEAR_PIVOT``: two-digit years ``>=`` the pivot map to 19xx,
  smaller ones to 20xx (default ``50``).
- ``ADVANZIA2CSV_DATE_ORDER``: ``DMY`` (default) or ``MDY`` for non-ISO dates.
- ``ADVANZIA2CSV_DECIMAL``: ``comma`` (default) or ``dot``; used only when a
  file gives no evidence of its own convention.
- ``ADVANZIA2CSV_SWAP_SIGN``: ``1``/``true`` to negate every amount.
- ``ADVANZIA2CSV_ENCODINGS``: comma-separated encodings to attempt
  (default ``utf-8,cp1252``).
- ``ADVANZIA2CSV_DELIMITER``: force ``,``, ``;`` or ``tab``.
- ``ADVANZIA2CSV_COLUMNS``: column order for header-less files
  (default ``date,amount,description,reference``).
"""

from __future__ import annotations

import codecs
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .currency import normalize_currency_code
from .errors import ConfigError, UnsupportedCurrencyError
from .models import DecimalConvention

DEFAULT_CURRENCY = "EUR"
DEFAULT_YEAR_PIVOT = 50
DEFAULT_ENCODINGS: tuple[str, ...] = ("utf-8", "cp1252")
DEFAULT_HEADERLESS_COLUMNS: tuple[str, ...] = ("date", "amount", "description", "reference")

DATE_ORDERS = ("DMY", "MDY")
DELIMITERS: dict[str, str] = {",": ",", ";": ";", "tab": "\t", "\t": "\t"}
KNOWN_COLUMN_ROLES = (
    "date",
    "amount",
    "debit",
    "credit",
    "direction",
    "currency",
    "description",
    "reference",
    "ignore",
)

_ENV_PREFIX = "ADVANZIA2CSV_"


@dataclass(frozen=True, slots=True)
class ReaderSettings:
    """Settings consumed by the statement readers."""

    encoding: str | None = None
    encodings: tuple[str, ...] = DEFAULT_ENCODINGS
    delimiter: str | None = None
    headerless_columns: tuple[str, ...] = DEFAULT_HEADERLESS_COLUMNS


@dataclass(frozen=True, slots=True)
class NormalizerSettings:
    """Settings consumed by the transaction normalizer."""

    default_currency: str = DEFAULT_CURRENCY
    year_pivot: int = DEFAULT_YEAR_PIVOT
    date_order: str = "DMY"
    default_decimal: DecimalConvention = DecimalConvention.COMMA
    swap_sign: bool = False


@dataclass(frozen=True, slots=True)
class Settings:
    reader: ReaderSettings = field(default_factory=ReaderSettings)
    normalizer: NormalizerSettings = field(default_factory=NormalizerSettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build validated settings from ``ADVANZIA2CSV_*`` variables.

        Raises ``ConfigError`` naming the offending variable on invalid input.
        """

        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(_ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        return cls().with_overrides(
            currency=get("CURRENCY"),
            year_pivot=get("YEAR_PIVOT"),
            date_order=get("DATE_ORDER"),
            decimal=get("DECIMAL"),
            swap_sign=get("SWAP_SIGN"),
            encodings=get("ENCODINGS"),
            delimiter=get("DELIMITER"),
            columns=get("COLUMNS"),
        )

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with the non-``None`` overrides applied and validated.

        Accepted keys: ``currency``, ``year_pivot``, ``date_order``,
        ``decimal``, ``swap_sign``, ``encoding``, ``encodings``,
        ``delimiter``, ``columns``. Values may be raw strings (as read from the
        environment or the command line) or already-typed values.
        """

        reader = self.reader
        normalizer = self.normalizer
        values = {k: v for k, v in overrides.items() if v is not None}
        unknown = sorted(set(values) - _OVERRIDE_KEYS)
        if unknown:
            raise ConfigError("unknown setting(s): " + ", ".join(unknown))

        if "currency" in values:
            normalizer = replace(normalizer, default_currency=_parse_currency(values["currency"]))
        if "year_pivot" in values:
            normalizer = replace(normalizer, year_pivot=_parse_year_pivot(values["year_pivot"]))
        if "date_order" in values:
            normalizer = replace(normalizer, date_order=_parse_date_order(values["date_order"]))
        if "decimal" in values:
            normalizer = replace(normalizer, default_decimal=_parse_decimal(values["decimal"]))
        if "swap_sign" in values:
            normalizer = replace(normalizer, swap_sign=_parse_bool("SWAP_SIGN", values["swap_sign"]))
        if "encoding" in values:
            reader = replace(reader, encoding=_parse_encoding(values["encoding"]))
        if "encodings" in values:
            reader = replace(reader, encodings=_parse_encodings(values["encodings"]))
        if "delimiter" in values:
            reader = replace(reader, delimiter=_parse_delimiter(values["delimiter"]))
        if "columns" in values:
            reader = replace(reader, headerless_columns=_parse_columns(values["columns"]))
        return Settings(reader=reader, normalizer=normalizer)


_OVERRIDE_KEYS = {
    "currency",
    "year_pivot",
    "date_order",
    "decimal",
    "swap_sign",
    "encoding",
    "encodings",
    "delimiter",
    "columns",
}


def _parse_currency(raw: str) -> str:
    try:
        return normalize_currency_code(raw)
    except UnsupportedCurrencyError as exc:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}CURRENCY: expected an ISO 4217 code like EUR, got {raw!r}"
        ) from exc


def _parse_year_pivot(raw: int | str) -> int:
    try:
        pivot = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}YEAR_PIVOT: expected an integer 0-99, got {raw!r}"
        ) from exc
    if not 0 <= pivot <= 99:
        raise ConfigError(f"Invalid {_ENV_PREFIX}YEAR_PIVOT: {pivot} is outside 0-99")
    return pivot


def _parse_date_order(raw: str) -> str:
    order = str(raw).strip().upper()
    if order not in DATE_ORDERS:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}DATE_ORDER: expected one of {', '.join(DATE_ORDERS)}, got {raw!r}"
        )
    return order


def _parse_decimal(raw: DecimalConvention | str) -> DecimalConvention:
    if isinstance(raw, DecimalConvention):
        return raw
    try:
        return DecimalConvention(str(raw).strip().lower())
    except ValueError as exc:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}DECIMAL: expected 'comma' or 'dot', got {raw!r}"
        ) from exc


def _parse_bool(name: str, raw: bool | str) -> bool:
    if isinstance(raw, bool):
        return raw
    v = str(raw).strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"Invalid {_ENV_PREFIX}{name}: expected a boolean, got {raw!r}")


def _parse_encoding(raw: str) -> str:
    name = str(raw).strip()
    try:
        return codecs.lookup(name).name
    except LookupError as exc:
        raise ConfigError(f"Unknown encoding: {raw!r}") from exc


def _parse_encodings(raw: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    names = tuple(_parse_encoding(p) for p in parts if str(p).strip())
    if not names:
        raise ConfigError(f"Invalid {_ENV_PREFIX}ENCODINGS: no encodings given")
    return names


def _parse_delimiter(raw: str) -> str:
    key = raw if raw == "\t" else str(raw).strip().lower()
    if key not in DELIMITERS:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}DELIMITER: expected ',', ';' or 'tab', got {raw!r}"
        )
    return DELIMITERS[key]


def _parse_columns(raw: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    roles = tuple(str(p).strip().lower() for p in parts)
    bad = [r for r in roles if r not in KNOWN_COLUMN_ROLES]
    if bad:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}COLUMNS: unknown column role(s) {', '.join(bad)}; "
            f"expected any of {', '.join(KNOWN_COLUMN_ROLES)}"
        )
    if "date" not in roles:
        raise ConfigError(f"Invalid {_ENV_PREFIX}COLUMNS: a 'date' column is required")
    if "amount" not in roles and not {"debit", "credit"} <= set(roles):
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}COLUMNS: an 'amount' column or both 'debit' and 'credit' are required"
        )
    duplicates = sorted({r for r in roles if r != "ignore" and roles.count(r) > 1})
    if duplicates:
        raise ConfigError(
            f"Invalid {_ENV_PREFIX}COLUMNS: duplicate column role(s) {', '.join(duplicates)}"
        )
    return roles


__all__ = [
    "DEFAULT_CURRENCY",
    "DEFAULT_ENCODINGS",
    "DEFAULT_HEADERLESS_COLUMNS",
    "DEFAULT_YEAR_PIVOT",
    "NormalizerSettings",
    "ReaderSettings",
    "Settings",
]
