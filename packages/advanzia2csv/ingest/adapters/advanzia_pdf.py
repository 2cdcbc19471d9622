"""Adapter for Advanzia credit-card statements delivered as PDF.

Text is extracted page by page with ``pdfplumber``. On each page only the
part between the opening balance banner (``ALTER SALDO``) and the closing
balance banner (``NEUER SALDO``) lists transactions; a missing banner means
the page start or end. Each transaction is a block::

    27.02.2022
    FABRIQUE - SEK 1111,00 (KURS 11,1111)
    STOCKHOLM
    19,23

i.e. a ``DD.MM.YYYY`` date line, one or more description lines, and the
booked amount as the last amount-shaped token of the block. Description lines
are joined with ``", "``. Charges are printed unsigned; credits carry a
sign, which is why the layout sets ``unsigned_is_outflow``.
"""

from __future__ import annotations

import io
import re
from collections.abc import Iterator, Sequence

import pdfplumber
from pdfminer.psparser import PSException
from pdfplumber.utils.exceptions import PdfminerException

from ...errors import MalformedInputError
from ...logging_setup import get_logger
from ...models import ColumnLayout, RawRecord

logger = get_logger("advanzia2csv.ingest.pdf")

STARTING_TEXT = "ALTER SALDO"
ENDING_TEXT = "NEUER SALDO"

# A booking date heads its block: it is followed by the end of its line.
_BLOCK_DATE = re.compile(r"\d{2}\.\d{2}\.\d{4}(?=[ \t]*(?:\n|$))")
_AMOUNT = re.compile(r"(?<![\d.,])[+-]?\d{1,3}(?:\.\d{3})*,\d{2}(?![\d,])[+-]?|(?<![\d.,])[+-]?\d+,\d{2}(?![\d,])[+-]?")

ADVANZIA_PDF_LAYOUT = ColumnLayout(
    width=3,
    date=0,
    description=1,
    amount=2,
    unsigned_is_outflow=True,
    has_header=False,
)


def extract_page_texts(data: bytes, *, source: str | None = None) -> list[str]:
    """Return the extracted text of every page in ``data``."""

    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return [page.extract_text() or "" for page in pdf.pages]
    except (PdfminerException, PSException, OSError, ValueError) as exc:
        raise MalformedInputError(
            f"cannot read PDF statement: {exc}", source=source
        ) from exc


def _transaction_window(text: str) -> tuple[int, int]:
    start = text.find(STARTING_TEXT)
    end = text.find(ENDING_TEXT, max(start, 0))
    return (start if start >= 0 else 0), (end if end >= 0 else len(text))


def _split_blocks(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(offset, block)`` for each date-headed block of ``text``."""

    starts = [m.start() for m in _BLOCK_DATE.finditer(text)]
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(text)
        yield start, text[start:end]


def _parse_block(block: str) -> tuple[str, str, str] | None:
    date, _, rest = block.strip().partition("\n")
    date = date.strip()
    amounts = list(_AMOUNT.finditer(rest))
    if not amounts:
        return None
    last = amounts[-1]
    trailing = rest[last.end():].strip()
    if trailing:
        logger.debug("ignoring text after amount: %r", trailing)
    description = ", ".join(
        line.strip() for line in rest[: last.start()].splitlines() if line.strip()
    )
    return date, description, last.group(0)


def iter_pdf_records(page_texts: Sequence[str], *, source: str | None = None) -> Iterator[RawRecord]:
    """Produce ``(date, description, amount)`` records from page texts.

    Line numbers count lines across all pages, as if the pages were one text.
    """

    lines_before_page = 0
    for page_number, text in enumerate(page_texts, 1):
        start, end = _transaction_window(text)
        window = text[start:end]
        window_line = text.count("\n", 0, start)
        found = 0
        for offset, block in _split_blocks(window):
            line_number = lines_before_page + window_line + window.count("\n", 0, offset) + 1
            parsed = _parse_block(block)
            if parsed is None:
                raise MalformedInputError(
                    "transaction block without an amount",
                    line_number=line_number,
                    raw_value=block.strip(),
                    source=source,
                )
            date, description, amount = parsed
            if not description:
                raise MalformedInputError(
                    "transaction block without a description",
                    line_number=line_number,
                    raw_value=block.strip(),
                    source=source,
                )
            found += 1
            yield RawRecord(fields=(date, description, amount), line_number=line_number, source=source)
        logger.debug("page %d: %d transaction block(s)", page_number, found)
        lines_before_page += text.count("\n") + 1


class AdvanziaPdfReader:
    """Single-pass reader over an Advanzia PDF statement."""

    layout = ADVANZIA_PDF_LAYOUT
    encoding: str | None = None

    def __init__(self, data: bytes, *, source: str | None = None) -> None:
        self.source = source
        self.page_texts = extract_page_texts(data, source=source)
        self._records = iter_pdf_records(self.page_texts, source=source)
        logger.debug("reading %s: %d page(s)", source or "<bytes>", len(self.page_texts))

    def __iter__(self) -> Iterator[RawRecord]:
        return self._records


__all__ = [
    "ADVANZIA_PDF_LAYOUT",
    "AdvanziaPdfReader",
    "ENDING_TEXT",
    "STARTING_TEXT",
    "extract_page_texts",
    "iter_pdf_records",
]
