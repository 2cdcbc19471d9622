import datetime as dt
from decimal import Decimal

import pytest

from advanzia2csv.config import NormalizerSettings
from advanzia2csv.errors import (
    UnparseableAmountError,
    UnparseableDateError,
    UnsupportedCurrencyError,
)
from advanzia2csv.models import ColumnLayout, DecimalConvention, RawRecord
from advanzia2csv.normalizers import (
    TransactionNormalizer,
    direction_from_marker,
    expand_two_digit_year,
    infer_decimal_convention,
    normalize_records,
    parse_amount,
    parse_date,
)

COMMA = DecimalConvention.COMMA
DOT = DecimalConvention.DOT

# date, amount, description, reference
BASIC = ColumnLayout(width=4, date=0, amount=1, description=2, reference=3)


def _records(*rows: tuple[str, ...]) -> list[RawRecord]:
    return [RawRecord(fields=row, line_number=i) for i, row in enumerate(rows, 1)]


def _amounts(batch) -> list[Decimal]:
    return [t.amount for t in batch]


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("01.02.2024", dt.date(2024, 2, 1)),
        ("01/02/2024", dt.date(2024, 2, 1)),
        ("1-2-2024", dt.date(2024, 2, 1)),
        ("2024-02-01", dt.date(2024, 2, 1)),
        ("2024/02/01", dt.date(2024, 2, 1)),
        ("20240201", dt.date(2024, 2, 1)),
        ("01.02.2024 10:33", dt.date(2024, 2, 1)),
        ("2024-02-01T10:33:00", dt.date(2024, 2, 1)),
        (" 29.02.2024 ", dt.date(2024, 2, 29)),
    ],
)
def test_parse_date_forms(raw, expected):
    assert parse_date(raw) == expected


def test_two_digit_year_pivot():
    assert parse_date("01.02.49") == dt.date(2049, 2, 1)
    assert parse_date("01.02.50") == dt.date(1950, 2, 1)
    assert parse_date("01.02.49", year_pivot=40) == dt.date(1949, 2, 1)
    assert expand_two_digit_year(0, 50) == 2000
    assert expand_two_digit_year(99, 50) == 1999


def test_month_first_order():
    assert parse_date("02/01/2024", date_order="MDY") == dt.date(2024, 2, 1)
    # ISO dates ignore the configured order.
    assert parse_date("2024-02-01", date_order="MDY") == dt.date(2024, 2, 1)


@pytest.mark.parametrize("raw", ["", "yesterday", "31.02.2024", "13/13/2024", "2024-1", "01.02"])
def test_unparseable_dates(raw):
    with pytest.raises(UnparseableDateError) as ei:
        parse_date(raw)
    assert ei.value.raw_value == raw


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, convention, expected",
    [
        ("1.234,56", COMMA, Decimal("1234.56")),
        ("1,234.56", DOT, Decimal("1234.56")),
        ("-12,50", COMMA, Decimal("-12.50")),
        ("12,50-", COMMA, Decimal("-12.50")),
        ("+12,50", COMMA, Decimal("12.50")),
        ("(12.50)", DOT, Decimal("-12.50")),
        ("12,50 S", COMMA, Decimal("-12.50")),
        ("12,50 H", COMMA, Decimal("12.50")),
        ("12.50 DR", DOT, Decimal("-12.50")),
        ("12.50 CR", DOT, Decimal("12.50")),
        ("12,50 Soll", COMMA, Decimal("-12.50")),
        ("€ 1 234,5", COMMA, Decimal("1234.50")),
        ("EUR -7,00", COMMA, Decimal("-7.00")),
        ("7", COMMA, Decimal("7.00")),
        ("-0,00", COMMA, Decimal("0.00")),
    ],
)
def test_parse_amount(raw, convention, expected):
    value = parse_amount(raw, convention)
    assert value == expected
    assert str(value) == str(expected)


def test_negative_zero_is_never_produced():
    assert str(parse_amount("-0,00", COMMA)) == "0.00"
    assert str(parse_amount("0,00", COMMA, unsigned_is_outflow=True)) == "0.00"


def test_unsigned_is_outflow():
    assert parse_amount("12,50", COMMA, unsigned_is_outflow=True) == Decimal("-12.50")
    assert parse_amount("12,50-", COMMA, unsigned_is_outflow=True) == Decimal("12.50")
    assert parse_amount("+12,50", COMMA, unsigned_is_outflow=True) == Decimal("12.50")


def test_precision_beyond_minor_units_is_rejected():
    with pytest.raises(UnparseableAmountError):
        parse_amount("12,505", COMMA)
    with pytest.raises(UnparseableAmountError):
        parse_amount("1,5", COMMA, currency="JPY")
    assert parse_amount("1.500", DOT, currency="KWD") == Decimal("1.500")


@pytest.mark.parametrize("raw", ["", "abc", "12,50,00", "1.23.4", "--"])
def test_unparseable_amounts(raw):
    with pytest.raises(UnparseableAmountError):
        parse_amount(raw, COMMA)


def test_amount_must_match_file_convention():
    with pytest.raises(UnparseableAmountError):
        parse_amount("1,234.56", COMMA)


def test_direction_markers():
    assert direction_from_marker("S") == -1
    assert direction_from_marker("haben") == 1
    assert direction_from_marker("Debit") == -1
    assert direction_from_marker("CR.") == 1
    assert direction_from_marker("") is None
    with pytest.raises(UnparseableAmountError):
        direction_from_marker("maybe")


# ---------------------------------------------------------------------------
# Decimal convention inference
# ---------------------------------------------------------------------------


def _infer(*values: str, default: DecimalConvention = COMMA) -> DecimalConvention:
    return infer_decimal_convention(((v, None) for v in values), default=default)


def test_thousands_pattern_decides_convention():
    assert _infer("12.50", "1.234,56") is COMMA
    assert _infer("12,50", "1,234.56") is DOT
    assert _infer("1.234.567") is COMMA
    assert _infer("1,234,567") is DOT


def test_decimal_tail_decides_without_thousands_pattern():
    assert _infer("100", "12.50") is DOT
    assert _infer("100", "12,5") is COMMA


def test_ambiguous_amounts_use_default():
    assert _infer("100", "1.234", default=DOT) is DOT
    assert _infer("100", "1.234") is COMMA


def test_conflicting_thousands_patterns_raise():
    rec = RawRecord(fields=("x",), line_number=7)
    with pytest.raises(UnparseableAmountError) as ei:
        infer_decimal_convention([("1.234,56", None), ("1,234.56", rec)])
    assert ei.value.line_number == 7


def test_locale_boundary_across_files():
    comma_file = _records(("01.02.2024", "-1.234,56", "Rent", ""))
    dot_file = _records(("01.02.2024", "-1,234.56", "Rent", ""))
    assert _amounts(normalize_records(comma_file, BASIC)) == [Decimal("-1234.56")]
    assert _amounts(normalize_records(dot_file, BASIC)) == [Decimal("-1234.56")]


def test_file_convention_is_inferred_from_later_rows():
    # "1,234" alone is ambiguous; the last row reveals dot decimals.
    rows = _records(
        ("01.02.2024", "1,234", "A", ""),
        ("02.02.2024", "5", "B", ""),
        ("03.02.2024", "1,234.56", "C", ""),
    )
    batch = normalize_records(rows, BASIC)
    assert batch.decimal_convention is DOT
    assert _amounts(batch) == [Decimal("1234.00"), Decimal("5.00"), Decimal("1234.56")]


# ---------------------------------------------------------------------------
# TransactionNormalizer
# ---------------------------------------------------------------------------


def test_one_transaction_per_record_in_order():
    rows = _records(
        ("01/02/2024", "-12,50", "Supermarket", "REF1"),
        ("02/02/2024", "3,00", "  Refund\n shop  ", ""),
    )
    batch = TransactionNormalizer().normalize(rows, BASIC, source="s.csv")
    assert len(batch) == len(rows)
    first, second = batch.transactions
    assert (first.date, first.amount, first.currency) == (dt.date(2024, 2, 1), Decimal("-12.50"), "EUR")
    assert (first.description, first.reference) == ("Supermarket", "REF1")
    assert (second.description, second.reference) == ("Refund shop", None)
    assert batch.source == "s.csv"
    assert batch.sources == ("s.csv",)


def test_currency_column_wins_over_inline_code_and_default():
    layout = ColumnLayout(width=4, date=0, amount=1, description=2, currency=3)
    rows = _records(
        ("01.02.2024", "-10,00", "Kiosk", "sek"),
        ("02.02.2024", "USD -5,00", "Shop", ""),
        ("03.02.2024", "-1,00", "Bakery", ""),
    )
    batch = normalize_records(rows, layout, NormalizerSettings(default_currency="CHF"))
    assert [t.currency for t in batch] == ["SEK", "USD", "CHF"]


def test_unknown_currency_raises_with_line_number():
    layout = ColumnLayout(width=3, date=0, amount=1, currency=2)
    rows = _records(("01.02.2024", "1,00", "EUR"), ("01.02.2024", "1,00", "XXX"))
    with pytest.raises(UnsupportedCurrencyError) as ei:
        normalize_records(rows, layout)
    assert ei.value.line_number == 2
    assert isinstance(ei.value, UnparseableAmountError)


def test_zero_decimal_currency():
    layout = ColumnLayout(width=3, date=0, amount=1, currency=2)
    batch = normalize_records(_records(("01.02.2024", "-1.500", "JPY")), layout)
    assert str(batch.transactions[0].amount) == "-1500"


def test_direction_column():
    layout = ColumnLayout(width=4, date=0, amount=1, direction=2, description=3)
    rows = _records(
        ("01.02.2024", "12,50", "S", "Shop"),
        ("02.02.2024", "3,00", "H", "Refund"),
        ("03.02.2024", "-1,00", "", "Fee"),
    )
    assert _amounts(normalize_records(rows, layout)) == [
        Decimal("-12.50"),
        Decimal("3.00"),
        Decimal("-1.00"),
    ]


def test_debit_and_credit_columns():
    layout = ColumnLayout(width=4, date=0, description=1, debit=2, credit=3)
    rows = _records(
        ("01.02.2024", "Shop", "12,50", ""),
        ("02.02.2024", "Refund", "", "3,00"),
    )
    assert _amounts(normalize_records(rows, layout)) == [Decimal("-12.50"), Decimal("3.00")]


def test_debit_and_credit_both_filled_is_an_error():
    layout = ColumnLayout(width=4, date=0, description=1, debit=2, credit=3)
    with pytest.raises(UnparseableAmountError):
        normalize_records(_records(("01.02.2024", "Shop", "12,50", "3,00")), layout)
    with pytest.raises(UnparseableAmountError):
        normalize_records(_records(("01.02.2024", "Shop", "", "")), layout)


def test_swap_sign_negates_every_amount():
    rows = _records(
        ("01.02.2024", "-12,50", "Shop", ""),
        ("02.02.2024", "3,00", "Refund", ""),
        ("03.02.2024", "0,00", "Nothing", ""),
    )
    batch = normalize_records(rows, BASIC, NormalizerSettings(swap_sign=True))
    assert [str(a) for a in _amounts(batch)] == ["12.50", "-3.00", "0.00"]


def test_bad_record_aborts_batch_with_context():
    rows = [
        RawRecord(fields=("01.02.2024", "-1,00", "A", ""), line_number=3, source="s.csv"),
        RawRecord(fields=("32.02.2024", "-1,00", "B", ""), line_number=4, source="s.csv"),
    ]
    with pytest.raises(UnparseableDateError) as ei:
        normalize_records(rows, BASIC)
    err = ei.value
    assert (err.line_number, err.raw_value, err.source) == (4, "32.02.2024", "s.csv")
    assert str(err).startswith("s.csv:4: ")


def test_amount_error_carries_raw_value():
    with pytest.raises(UnparseableAmountError) as ei:
        normalize_records(_records(("01.02.2024", "12,50,00", "A", "")), BASIC)
    assert ei.value.raw_value == "12,50,00"
    assert ei.value.line_number == 1


def test_date_order_setting_applies():
    batch = normalize_records(
        _records(("02/01/2024", "-1,00", "A", "")), BASIC, NormalizerSettings(date_order="MDY")
    )
    assert batch.transactions[0].date == dt.date(2024, 2, 1)
