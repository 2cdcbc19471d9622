"""Raw statement records → canonical :class:`Transaction` values.

Policies (all explicit, all covered by tests):

- **Dates**: ``DD.MM.YYYY``, ``DD/MM/YYYY``, ``DD-MM-YYYY`` and their two-digit
  year forms, plus ISO ``YYYY-MM-DD`` (also ``YYYY/MM/DD`` and ``YYYYMMDD``).
  A trailing time is ignored. Non-ISO forms are day-first unless the settings
  say ``MDY``. A two-digit year ``yy`` maps to ``19yy`` when ``yy >= pivot``
  and to ``20yy`` otherwise (pivot 50 by default).
- **Decimal convention**: inferred once per file. Thousands-separator
  patterns (``1.234,56`` / ``1,234.56``) decide first; otherwise the first
  amount with a short decimal tail (``12,50`` / ``12.50``); otherwise the
  configured default. Every amount is then validated strictly against that
  convention.
- **Precision**: amounts may not carry more fractional digits than the
  currency's minor unit; nothing is rounded silently.
- **Sign**: negative means outflow. Direction comes from a leading/trailing
  sign, parentheses, a ``S``/``H`` style marker, a direction column, or
  separate debit/credit columns.

A record that fails any of these aborts the whole batch.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation

from .config import NormalizerSettings
from .currency import MINOR_UNITS, minor_units, normalize_currency_code, quantum
from .errors import ConversionError, UnparseableAmountError, UnparseableDateError
from .logging_setup import get_logger
from .models import Batch, ColumnLayout, DecimalConvention, RawRecord, Transaction

logger = get_logger("advanzia2csv.normalizers")

# ---------------------------------------------------------------------------
# Helpers (text, dates)
# ---------------------------------------------------------------------------


def _clean_text(value: str | None) -> str:
    if value is None:
        return ""
    # Replace internal newlines with spaces, collapse whitespace, and strip.
    return re.sub(r"\s+", " ", value).strip()


_ISO_DATE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$")
_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DAY_MONTH_DATE = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4}|\d{2})$")


def expand_two_digit_year(yy: int, pivot: int) -> int:
    """``yy >= pivot`` → 19yy, otherwise 20yy."""

    return 1900 + yy if yy >= pivot else 2000 + yy


def parse_date(raw: str | None, *, year_pivot: int = 50, date_order: str = "DMY") -> dt.date:
    """Parse a statement date; raises ``UnparseableDateError``."""

    s = (raw or "").strip()
    # Some exports append a time ("01.02.2024 10:33" or ISO "2024-02-01T10:33").
    first = s.split()[0] if s else ""
    first = first.split("T", 1)[0]

    iso = _ISO_DATE.match(first) or _COMPACT_DATE.match(first)
    day_month = _DAY_MONTH_DATE.match(first)
    try:
        if iso:
            return dt.date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        if day_month:
            a, b, year_text = int(day_month.group(1)), int(day_month.group(2)), day_month.group(3)
            day, month = (b, a) if date_order == "MDY" else (a, b)
            year = int(year_text)
            if len(year_text) == 2:
                year = expand_two_digit_year(year, year_pivot)
            return dt.date(year, month, day)
    except ValueError as exc:
        raise UnparseableDateError(f"invalid calendar date: {exc}", raw_value=raw) from exc
    raise UnparseableDateError("unrecognized date format", raw_value=raw)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_OUTFLOW_MARKERS = {"s", "soll", "d", "dr", "debit", "belastung", "lastschrift", "-"}
_INFLOW_MARKERS = {"h", "haben", "c", "cr", "credit", "gutschrift", "+"}
_MARKER_SUFFIX = re.compile(
    r"\s*(?<![A-Za-z])(soll|haben|debit|credit|lastschrift|gutschrift|belastung|dr|cr|s|h|d|c)\.?$",
    re.IGNORECASE,
)
_CURRENCY_SYMBOLS = "€$£¥"
_SPACES = re.compile(r"[\s\u00a0\u202f']")

_STRONG_COMMA = re.compile(r"^\d{1,3}(?:\.\d{3})+,\d+$|^\d{1,3}(?:\.\d{3}){2,}$")
_STRONG_DOT = re.compile(r"^\d{1,3}(?:,\d{3})+\.\d+$|^\d{1,3}(?:,\d{3}){2,}$")
_TAIL_COMMA = re.compile(r"^\d+,(?:\d{1,2}|\d{4,})$")
_TAIL_DOT = re.compile(r"^\d+\.(?:\d{1,2}|\d{4,})$")

_VALID: dict[DecimalConvention, re.Pattern[str]] = {
    DecimalConvention.COMMA: re.compile(r"^\d{1,3}(?:\.\d{3})+(?:,\d+)?$|^\d+(?:,\d+)?$"),
    DecimalConvention.DOT: re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d+)?$|^\d+(?:\.\d+)?$"),
}


class _AmountText:
    """An amount string split into its numeric core and direction hints."""

    __slots__ = ("raw", "core", "sign", "marker", "currency")

    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.sign: int | None = None
        self.marker: int | None = None
        self.currency: str | None = None
        s = raw.strip()

        # Iteratively strip signs, parentheses, currency codes/symbols, and
        # textual debit/credit markers until stable, so any ordering works.
        while True:
            changed = False
            if s and s[0] in "+-":
                self.sign = -1 if s[0] == "-" else (self.sign or 1)
                s = s[1:].strip()
                changed = True
            if s and s[-1] in "+-":
                self.sign = -1 if s[-1] == "-" else (self.sign or 1)
                s = s[:-1].strip()
                changed = True
            if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
                self.sign = -1
                s = s[1:-1].strip()
                changed = True
            if s[:1] and s[0] in _CURRENCY_SYMBOLS:
                s = s[1:].strip()
                changed = True
            if s[-1:] and s[-1] in _CURRENCY_SYMBOLS:
                s = s[:-1].strip()
                changed = True
            if len(s) > 3 and s[:3].upper() in MINOR_UNITS and not s[3].isalpha():
                self.currency = s[:3].upper()
                s = s[3:].strip()
                changed = True
            if len(s) > 3 and s[-3:].upper() in MINOR_UNITS and not s[-4].isalpha():
                self.currency = s[-3:].upper()
                s = s[:-3].strip()
                changed = True
            m = _MARKER_SUFFIX.search(s)
            if m and m.start() > 0:
                self.marker = direction_from_marker(m.group(1))
                s = s[: m.start()].strip()
                changed = True
            if not changed:
                break

        self.core = _SPACES.sub("", s)


def direction_from_marker(raw: str | None) -> int | None:
    """Map a debit/credit marker to ``-1`` (outflow) / ``+1`` (inflow).

    Returns ``None`` for a blank marker; raises ``UnparseableAmountError`` for
    an unknown one.
    """

    v = (raw or "").strip().lower().rstrip(".")
    if not v:
        return None
    if v in _OUTFLOW_MARKERS:
        return -1
    if v in _INFLOW_MARKERS:
        return 1
    raise UnparseableAmountError("unknown debit/credit marker", raw_value=raw)


def infer_decimal_convention(
    values: Iterable[tuple[str, RawRecord | None]],
    *,
    default: DecimalConvention = DecimalConvention.COMMA,
) -> DecimalConvention:
    """Infer the decimal convention of a file from all of its amount strings.

    ``values`` pairs each amount string with its record (for error context).
    Raises ``UnparseableAmountError`` when the file mixes thousands-separator
    styles.
    """

    strong: tuple[DecimalConvention, str, RawRecord | None] | None = None
    weak: DecimalConvention | None = None
    for raw, record in values:
        core = _AmountText(raw).core
        if not core:
            continue
        found: DecimalConvention | None = None
        if _STRONG_COMMA.match(core):
            found = DecimalConvention.COMMA
        elif _STRONG_DOT.match(core):
            found = DecimalConvention.DOT
        if found is not None:
            if strong is None:
                strong = (found, raw, record)
            elif strong[0] is not found:
                raise UnparseableAmountError(
                    f"amount uses {found.value}-decimal grouping but the file uses "
                    f"{strong[0].value}-decimal grouping (see {strong[1]!r})",
                    raw_value=raw,
                    line_number=record.line_number if record else None,
                )
            continue
        if weak is None:
            if _TAIL_COMMA.match(core):
                weak = DecimalConvention.COMMA
            elif _TAIL_DOT.match(core):
                weak = DecimalConvention.DOT
    if strong is not None:
        return strong[0]
    return weak or default


def parse_magnitude(text: _AmountText, convention: DecimalConvention, currency: str) -> Decimal:
    """Numeric value of ``text.core`` under ``convention``, quantized to ``currency``."""

    core = text.core
    if not _VALID[convention].match(core):
        raise UnparseableAmountError(
            f"not a {convention.value}-decimal amount", raw_value=text.raw
        )
    plain = core.replace(convention.group_mark, "").replace(convention.decimal_mark, ".")
    try:
        value = Decimal(plain)
    except InvalidOperation as exc:  # pragma: no cover - guarded by the regex above
        raise UnparseableAmountError("invalid amount", raw_value=text.raw) from exc
    digits = minor_units(currency)
    _, _, fraction = plain.partition(".")
    if len(fraction) > digits:
        raise UnparseableAmountError(
            f"{len(fraction)} decimal digits exceed {currency}'s {digits}", raw_value=text.raw
        )
    return value.quantize(quantum(currency))


def parse_amount(
    raw: str,
    convention: DecimalConvention,
    *,
    currency: str = "EUR",
    unsigned_is_outflow: bool = False,
) -> Decimal:
    """Parse a single signed amount string (negative = outflow)."""

    text = _AmountText(raw)
    if not text.core:
        raise UnparseableAmountError("amount is empty", raw_value=raw)
    magnitude = parse_magnitude(text, convention, currency)
    return _apply_direction(magnitude, text, direction=None, unsigned_is_outflow=unsigned_is_outflow)


def _apply_direction(
    magnitude: Decimal,
    text: _AmountText,
    *,
    direction: int | None,
    unsigned_is_outflow: bool,
) -> Decimal:
    if direction is None:
        direction = text.marker
    if direction is None:
        if unsigned_is_outflow:
            # Card statements print charges bare and mark only credits.
            direction = 1 if text.sign is not None else -1
        else:
            direction = text.sign or 1
    signed = abs(magnitude) if direction > 0 else -abs(magnitude)
    # Never produce a negative zero.
    return signed if signed != 0 else abs(signed)


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


def _field(record: RawRecord, index: int | None) -> str:
    if index is None:
        return ""
    return record.fields[index]


def _amount_fields(layout: ColumnLayout) -> tuple[int, ...]:
    return tuple(i for i in (layout.amount, layout.debit, layout.credit) if i is not None)


class TransactionNormalizer:
    """Normalize raw statement records into a :class:`Batch`.

    Usage
    -----
    batch = TransactionNormalizer(settings).normalize(reader, reader.layout)
    """

    def __init__(self, settings: NormalizerSettings | None = None) -> None:
        self.settings = settings or NormalizerSettings()

    def normalize(
        self,
        records: Iterable[RawRecord],
        layout: ColumnLayout,
        *,
        source: str | None = None,
    ) -> Batch:
        # The decimal convention is a file-level property: look at every
        # amount before interpreting any of them.
        rows = list(records)
        convention = infer_decimal_convention(
            ((r.fields[i], r) for r in rows for i in _amount_fields(layout)),
            default=self.settings.default_decimal,
        )
        logger.debug("%s: %s-decimal amounts", source or "<records>", convention.value)

        transactions = tuple(self._normalize_record(r, layout, convention) for r in rows)
        return Batch(
            transactions=transactions,
            source=source,
            decimal_convention=convention,
            sources=(source,) if source else (),
        )

    def _normalize_record(
        self, record: RawRecord, layout: ColumnLayout, convention: DecimalConvention
    ) -> Transaction:
        try:
            date = parse_date(
                _field(record, layout.date),
                year_pivot=self.settings.year_pivot,
                date_order=self.settings.date_order,
            )
            currency, amount = self._amount(record, layout, convention)
        except ConversionError as exc:
            if exc.line_number is None:
                exc.line_number = record.line_number
            raise exc.with_source(record.source)

        if self.settings.swap_sign:
            amount = -amount if amount != 0 else amount

        return Transaction(
            date=date,
            amount=amount,
            currency=currency,
            description=_clean_text(_field(record, layout.description)),
            reference=_clean_text(_field(record, layout.reference)) or None,
        )

    def _currency(self, record: RawRecord, layout: ColumnLayout, inline: Sequence[str | None]) -> str:
        column = _field(record, layout.currency).strip()
        if column:
            return normalize_currency_code(column)
        for code in inline:
            if code:
                return code
        return self.settings.default_currency

    def _amount(
        self, record: RawRecord, layout: ColumnLayout, convention: DecimalConvention
    ) -> tuple[str, Decimal]:
        direction = direction_from_marker(_field(record, layout.direction))

        if layout.amount is not None:
            text = _AmountText(_field(record, layout.amount))
            if not text.core:
                raise UnparseableAmountError("amount is empty", raw_value=text.raw)
            currency = self._currency(record, layout, [text.currency])
            magnitude = parse_magnitude(text, convention, currency)
            amount = _apply_direction(
                magnitude,
                text,
                direction=direction,
                unsigned_is_outflow=layout.unsigned_is_outflow,
            )
            return currency, amount

        debit = _AmountText(_field(record, layout.debit))
        credit = _AmountText(_field(record, layout.credit))
        currency = self._currency(record, layout, [debit.currency, credit.currency])
        debit_value = parse_magnitude(debit, convention, currency) if debit.core else None
        credit_value = parse_magnitude(credit, convention, currency) if credit.core else None
        if debit_value is None and credit_value is None:
            raise UnparseableAmountError(
                "neither debit nor credit amount present",
                raw_value=record.raw_line(),
            )
        if debit_value and credit_value:
            raise UnparseableAmountError(
                "both debit and credit amounts present",
                raw_value=record.raw_line(),
            )
        if debit_value:
            return currency, -abs(debit_value)
        return currency, abs(credit_value if credit_value is not None else debit_value)


def normalize_records(
    records: Iterable[RawRecord],
    layout: ColumnLayout,
    settings: NormalizerSettings | None = None,
    *,
    source: str | None = None,
) -> Batch:
    """Functional shortcut for :meth:`TransactionNormalizer.normalize`."""

    return TransactionNormalizer(settings).normalize(records, layout, source=source)


__all__ = [
    "TransactionNormalizer",
    "direction_from_marker",
    "expand_two_digit_year",
    "infer_decimal_convention",
    "normalize_records",
    "parse_amount",
    "parse_date",
]
