import datetime as dt
from decimal import Decimal

import pdfplumber
import pytest
from pdfminer.pdfparser import PDFSyntaxError

from advanzia2csv.api import convert_bytes
from advanzia2csv.config import Settings
from advanzia2csv.errors import MalformedInputError
from advanzia2csv.ingest.adapters.advanzia_pdf import (
    ADVANZIA_PDF_LAYOUT,
    AdvanziaPdfReader,
    iter_pdf_records,
)

SAMPLE_TEXT = (
    "some prefix26.01.2021\n"
    "IKEA BORLANGE - SEK 111,00 (KURS 11,1111)\n"
    "BORLANGE\n"
    "18,30\n"
    "27.02.2022\n"
    "FABRIQUE - SEK 1111,00 (KURS 11,1111)\n"
    "STOCKHOLM\n"
    "19,23\n"
    "27.11.2023\n"
    "Inc. - SEK 111,11 (KURS 11,1111)\n"
    "UPPLANDS VAS\n"
    "14,62 some ending"
)


class _FakePage:
    def __init__(self, text: str | None) -> None:
        self._text = text

    def extract_text(self) -> str | None:
        return self._text


class _FakePdf:
    def __init__(self, texts: list[str | None]) -> None:
        self.pages = [_FakePage(t) for t in texts]

    def __enter__(self) -> "_FakePdf":
        return self

    def __exit__(self, *exc) -> bool:
        return False


@pytest.fixture
def fake_pdf(monkeypatch: pytest.MonkeyPatch):
    """Make ``pdfplumber.open`` return pages with the given texts."""

    def install(*texts: str | None) -> None:
        monkeypatch.setattr(pdfplumber, "open", lambda fp: _FakePdf(list(texts)))

    return install


def test_blocks_split_on_dates_with_last_amount_and_joined_description():
    records = list(iter_pdf_records([SAMPLE_TEXT]))
    assert [r.fields for r in records] == [
        ("26.01.2021", "IKEA BORLANGE - SEK 111,00 (KURS 11,1111), BORLANGE", "18,30"),
        ("27.02.2022", "FABRIQUE - SEK 1111,00 (KURS 11,1111), STOCKHOLM", "19,23"),
        ("27.11.2023", "Inc. - SEK 111,11 (KURS 11,1111), UPPLANDS VAS", "14,62"),
    ]
    assert [r.line_number for r in records] == [1, 5, 9]


def test_only_text_between_balance_banners_is_read():
    page = (
        "Kontoauszug\n"
        "15.03.2024\n"
        "ALTER SALDO 100,00\n"
        "01.03.2024\n"
        "SHOP ONE\n"
        "12,50\n"
        "02.03.2024\n"
        "GUTSCHRIFT\n"
        "20,00-\n"
        "NEUER SALDO 92,50\n"
        "20.03.2024\n"
        "Footer\n"
    )
    records = list(iter_pdf_records([page]))
    assert [r.fields for r in records] == [
        ("01.03.2024", "SHOP ONE", "12,50"),
        ("02.03.2024", "GUTSCHRIFT", "20,00-"),
    ]
    assert [r.line_number for r in records] == [4, 7]


def test_line_numbers_continue_across_pages():
    pages = ["ALTER SALDO\n01.03.2024\nA\n1,00\nNEUER SALDO", "02.03.2024\nB\n2,00"]
    records = list(iter_pdf_records(pages))
    assert [r.line_number for r in records] == [2, 6]


def test_block_without_amount_is_malformed():
    with pytest.raises(MalformedInputError) as ei:
        list(iter_pdf_records(["ALTER SALDO\n01.03.2024\nSHOP\nNEUER SALDO"], source="s.pdf"))
    assert ei.value.line_number == 2
    assert ei.value.source == "s.pdf"


def test_reader_uses_pdfplumber_page_texts(fake_pdf):
    fake_pdf(SAMPLE_TEXT, None)
    reader = AdvanziaPdfReader(b"%PDF-1.7 fake", source="statement.pdf")
    assert reader.layout is ADVANZIA_PDF_LAYOUT
    assert reader.page_texts == [SAMPLE_TEXT, ""]
    assert len(list(reader)) == 3
    assert list(reader) == []


def test_unreadable_pdf_is_malformed(monkeypatch: pytest.MonkeyPatch):
    def boom(fp):
        raise ValueError("No /Root object! - Is this really a PDF?")

    monkeypatch.setattr(pdfplumber, "open", boom)
    with pytest.raises(MalformedInputError) as ei:
        AdvanziaPdfReader(b"%PDF-broken", source="broken.pdf")
    assert "broken.pdf" in str(ei.value)


def test_pdf_syntax_error_is_malformed(monkeypatch: pytest.MonkeyPatch):
    def boom(fp):
        raise PDFSyntaxError("No /Root object!")

    monkeypatch.setattr(pdfplumber, "open", boom)
    with pytest.raises(MalformedInputError) as ei:
        AdvanziaPdfReader(b"%PDF-broken", source="broken.pdf")
    assert "No /Root object!" in str(ei.value)


def test_programming_errors_in_pdf_extraction_propagate(monkeypatch: pytest.MonkeyPatch):
    def boom(fp):
        raise TypeError("unexpected argument")

    monkeypatch.setattr(pdfplumber, "open", boom)
    with pytest.raises(TypeError):
        AdvanziaPdfReader(b"%PDF-1.7", source="statement.pdf")


def test_pdf_charges_are_outflows_and_signed_amounts_inflows(fake_pdf):
    fake_pdf("ALTER SALDO\n01.03.2024\nSHOP ONE\n12,50\n02.03.2024\nGUTSCHRIFT\n20,00-\nNEUER SALDO")
    batch = convert_bytes(b"%PDF-1.7 fake", Settings(), source="statement.pdf")
    assert [(t.date, t.amount, t.currency, t.description) for t in batch] == [
        (dt.date(2024, 3, 1), Decimal("-12.50"), "EUR", "SHOP ONE"),
        (dt.date(2024, 3, 2), Decimal("20.00"), "EUR", "GUTSCHRIFT"),
    ]


def test_swap_sign_restores_printed_signs(fake_pdf):
    fake_pdf(SAMPLE_TEXT)
    settings = Settings().with_overrides(swap_sign=True)
    batch = convert_bytes(b"%PDF-1.7 fake", settings)
    assert [t.amount for t in batch] == [Decimal("18.30"), Decimal("19.23"), Decimal("14.62")]
