"""Data models for the statement conversion pipeline.

Three stages hand frozen structures to one another:

- the reader produces :class:`RawRecord` values together with the file's
  :class:`ColumnLayout`;
- the normalizer turns them into :class:`Transaction` values grouped in a
  :class:`Batch`;
- the emitter serializes a :class:`Batch`.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from .currency import minor_units, normalize_currency_code


class DecimalConvention(str, Enum):
    """How a file writes the fractional part of an amount."""

    COMMA = "comma"  # 1.234,56
    DOT = "dot"  # 1,234.56

    @property
    def decimal_mark(self) -> str:
        return "," if self is DecimalConvention.COMMA else "."

    @property
    def group_mark(self) -> str:
        return "." if self is DecimalConvention.COMMA else ","


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One statement record as split by the reader.

    ``line_number`` is the 1-based line where the record starts in the decoded
    text (for PDFs, in the concatenated text of all pages).
    """

    fields: tuple[str, ...]
    line_number: int
    source: str | None = None

    def raw_line(self) -> str:
        return " | ".join(self.fields)


@dataclass(frozen=True, slots=True)
class ColumnLayout:
    """Where each canonical value lives within a :class:`RawRecord`.

    Exactly one of ``amount`` or the ``debit``/``credit`` pair must be set.
    ``unsigned_is_outflow`` describes statements (such as the card PDF) that
    print charges without a sign and mark only inflows.
    """

    width: int
    date: int
    description: int | None = None
    amount: int | None = None
    debit: int | None = None
    credit: int | None = None
    direction: int | None = None
    currency: int | None = None
    reference: int | None = None
    unsigned_is_outflow: bool = False
    has_header: bool = False

    def __post_init__(self) -> None:
        if self.amount is None and (self.debit is None or self.credit is None):
            raise ValueError("layout needs an amount column or both debit and credit columns")
        for name in ("date", "description", "amount", "debit", "credit", "direction", "currency", "reference"):
            idx = getattr(self, name)
            if idx is not None and not 0 <= idx < self.width:
                raise ValueError(f"column {name!r} index {idx} outside schema width {self.width}")


@dataclass(frozen=True, slots=True)
class Transaction:
    """A canonical transaction.

    Invariants (checked on construction):

    - ``currency`` is a recognized ISO 4217 code;
    - ``amount`` carries exactly the currency's minor-unit digits;
    - negative ``amount`` means money leaving the account.
    """

    date: dt.date
    amount: Decimal
    currency: str
    description: str
    reference: str | None = None

    def __post_init__(self) -> None:
        code = normalize_currency_code(self.currency)
        if code != self.currency:
            object.__setattr__(self, "currency", code)
        if not isinstance(self.date, dt.date) or isinstance(self.date, dt.datetime):
            raise TypeError(f"date must be a datetime.date, got {type(self.date).__name__}")
        exponent = self.amount.as_tuple().exponent
        if not isinstance(exponent, int) or -exponent != minor_units(code):
            raise ValueError(
                f"amount {self.amount} does not carry {minor_units(code)} decimal digits for {code}"
            )


@dataclass(frozen=True, slots=True)
class Batch:
    """Ordered transactions produced from one statement file (or a merge)."""

    transactions: tuple[Transaction, ...]
    source: str | None = None
    decimal_convention: DecimalConvention | None = None
    sources: tuple[str, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.transactions)

    def __iter__(self):
        return iter(self.transactions)

    def sorted_by_date(self) -> Batch:
        """Return a copy stably sorted by transaction date."""

        return Batch(
            transactions=tuple(sorted(self.transactions, key=lambda t: t.date)),
            source=self.source,
            decimal_convention=self.decimal_convention,
            sources=self.sources,
        )


__all__ = ["Batch", "ColumnLayout", "DecimalConvention", "RawRecord", "Transaction"]
