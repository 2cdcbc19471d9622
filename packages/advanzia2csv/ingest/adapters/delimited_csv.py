"""Adapter for delimited-text statement exports (CSV with ``,``, ``;`` or tab).

Contract
--------
- Input is a byte stream; decoding follows :func:`decode_statement`.
- The delimiter is declared or detected once per file from a sample of lines.
  Quoted fields follow standard CSV escaping (doubled quotes, embedded
  delimiters and newlines).
- The first non-banner row is a header when it names known columns (see
  :mod:`advanzia2csv.ingest.columns`); otherwise the configured header-less
  column order applies.
- Blank rows, all-empty rows, and banner rows (a single text cell, or a
  leading cell starting with a balance marker such as ``Neuer Saldo``) are
  skipped. A row starting with a date and carrying an amount is always a
  record.

Failure mode
------------
``MalformedInputError`` with the record's start line when a row's width
differs from the schema width, when quoting is broken, or when a lone cell
holds a date followed by an amount (a record that lost its delimiters).
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterator, Sequence

from ...config import ReaderSettings
from ...errors import MalformedInputError
from ...logging_setup import get_logger
from ...models import ColumnLayout, RawRecord
from ..columns import header_roles, layout_from_roles, looks_like_header
from ..utils import decode_statement

logger = get_logger("advanzia2csv.ingest.delimited")

CANDIDATE_DELIMITERS: tuple[str, ...] = (";", ",", "\t")
_SAMPLE_LINES = 50

_BALANCE_MARKER = re.compile(
    r"^(?:(?:alter|neuer)\s+saldo|saldo(?:vortrag)?\b|kontostand\b|summe\b|total\b"
    r"|(?:opening|closing|new|previous)\s+balance)",
    re.IGNORECASE,
)
_LEADING_DATE = re.compile(r"^\s*(?:\d{1,2}[./-]\d{1,2}[./-]\d{2,4}|\d{4}[./-]\d{1,2}[./-]\d{1,2})")
_DATE_CELL = re.compile(
    r"^\s*(?:\d{1,2}[./-]\d{1,2}[./-](?:\d{4}|\d{2})|\d{4}[./-]\d{1,2}[./-]\d{1,2}|\d{8})"
    r"(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?\s*$"
)
_AMOUNT_TOKEN = re.compile(r"\d[.,]\d{1,2}(?![.,]?\d)")


def detect_delimiter(text: str) -> str:
    """Pick the delimiter that best splits a sample of lines into records.

    Candidates are ranked by how many sample lines get a cell that is exactly
    a date, then by how many lines split into more than one field, then by
    the most common width. Remaining ties go to candidate order (``;``
    before ``,`` before tab). Falls back to ``,``.
    """

    sample = [line for line in text.splitlines() if line.strip()][:_SAMPLE_LINES]
    best: tuple[int, int, int] = (0, 0, 0)
    chosen = ","
    for delim in CANDIDATE_DELIMITERS:
        counts: dict[int, int] = {}
        dated = 0
        for row in csv.reader(sample, delimiter=delim):
            if len(row) > 1:
                counts[len(row)] = counts.get(len(row), 0) + 1
                if any(_DATE_CELL.match(cell) for cell in row):
                    dated += 1
        if not counts:
            continue
        modal_width = max(counts.items(), key=lambda kv: (kv[1], kv[0]))[0]
        score = (dated, sum(counts.values()), modal_width)
        if score > best:
            best = score
            chosen = delim
    return chosen


def is_banner(cells: Sequence[str]) -> bool:
    """True for header/footer banner rows that carry no transaction.

    A row that starts with a date and has an amount-shaped cell is never a
    banner, whatever its description says.
    """

    non_empty = [c for c in cells if c]
    if not non_empty:
        return True
    if _looks_like_record(non_empty):
        return False
    if _BALANCE_MARKER.match(non_empty[0]):
        return True
    return len(non_empty) < 2


def _has_amount(cell: str) -> bool:
    return _AMOUNT_TOKEN.search(cell) is not None or cell.strip("+-() ").isdigit()


def _looks_like_record(non_empty: Sequence[str]) -> bool:
    if len(non_empty) == 1:
        return _is_collapsed_record(non_empty[0])
    return _LEADING_DATE.match(non_empty[0]) is not None and any(
        _has_amount(c) for c in non_empty[1:]
    )


def _is_collapsed_record(cell: str) -> bool:
    # A date followed by an amount in one cell: a record split on the wrong delimiter.
    m = _LEADING_DATE.match(cell)
    return m is not None and _AMOUNT_TOKEN.search(cell, m.end()) is not None


class DelimitedStatementReader:
    """Single-pass reader producing :class:`RawRecord` values from delimited text.

    ``layout`` is available right after construction; records are produced
    lazily by iterating the reader, once.
    """

    def __init__(
        self,
        data: bytes,
        *,
        settings: ReaderSettings | None = None,
        source: str | None = None,
    ) -> None:
        settings = settings or ReaderSettings()
        self.source = source
        text, self.encoding = decode_statement(
            data,
            encoding=settings.encoding,
            candidates=settings.encodings,
            source=source,
        )
        self.delimiter = settings.delimiter or detect_delimiter(text)
        self._rows = self._numbered_rows(text)
        self._pending: tuple[int, list[str]] | None = None
        self.layout = self._detect_layout(settings.headerless_columns)
        self._records = self._iter_records()
        logger.debug(
            "reading %s: encoding=%s delimiter=%r header=%s width=%d",
            source or "<bytes>",
            self.encoding,
            self.delimiter,
            self.layout.has_header,
            self.layout.width,
        )

    def __iter__(self) -> Iterator[RawRecord]:
        return self._records

    # -- internals ---------------------------------------------------------

    def _numbered_rows(self, text: str) -> Iterator[tuple[int, list[str]]]:
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter, strict=True)
        while True:
            start = reader.line_num + 1
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                raise MalformedInputError(
                    f"broken CSV quoting: {exc}", line_number=start, source=self.source
                ) from exc
            yield start, [cell.strip() for cell in row]

    def _next_content_row(self) -> tuple[int, list[str]] | None:
        for line_number, cells in self._rows:
            if not any(cells):
                continue
            if is_banner(cells):
                logger.debug("skipping banner at line %d: %r", line_number, cells)
                continue
            if sum(1 for c in cells if c) < 2:
                raise MalformedInputError(
                    "record has a single field; check the delimiter",
                    line_number=line_number,
                    raw_value=self.delimiter.join(cells),
                    source=self.source,
                )
            return line_number, cells
        return None

    def _detect_layout(self, headerless_columns: Sequence[str]) -> ColumnLayout:
        first = self._next_content_row()
        if first is None:
            return layout_from_roles(
                list(headerless_columns), width=len(headerless_columns), has_header=False
            )

        line_number, cells = first
        if looks_like_header(cells):
            roles: list[str | None] = header_roles(cells)
            has_header = True
            logger.debug("header at line %d: %r", line_number, cells)
        else:
            roles = list(headerless_columns[: len(cells)])
            roles += ["ignore"] * (len(cells) - len(roles))
            has_header = False
            self._pending = first

        try:
            return layout_from_roles(roles, width=len(cells), has_header=has_header)
        except ValueError as exc:
            raise MalformedInputError(
                f"cannot map columns to a statement schema: {exc}",
                line_number=line_number,
                raw_value=self.delimiter.join(cells),
                source=self.source,
            ) from exc

    def _iter_records(self) -> Iterator[RawRecord]:
        width = self.layout.width
        while True:
            if self._pending is not None:
                item: tuple[int, list[str]] | None = self._pending
                self._pending = None
            else:
                item = self._next_content_row()
            if item is None:
                return
            line_number, cells = item
            # Tolerate trailing empty cells left by a dangling delimiter.
            while len(cells) > width and cells[-1] == "":
                cells = cells[:-1]
            if len(cells) != width:
                raise MalformedInputError(
                    f"expected {width} fields, found {len(cells)}",
                    line_number=line_number,
                    raw_value=self.delimiter.join(cells),
                    source=self.source,
                )
            yield RawRecord(fields=tuple(cells), line_number=line_number, source=self.source)


__all__ = ["CANDIDATE_DELIMITERS", "DelimitedStatementReader", "detect_delimiter", "is_banner"]
