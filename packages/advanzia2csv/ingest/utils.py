"""Ingest helpers shared by the CLI, the API, and the statement adapters.

- :func:`decode_statement` turns raw bytes into text, honoring byte-order
  marks and trying the configured encodings in order.
- :func:`open_statement` picks the adapter for a byte stream: the Advanzia PDF
  layout when the bytes carry a PDF signature, delimited text otherwise.
"""

from __future__ import annotations

import codecs
from collections.abc import Iterator
from os import PathLike
from pathlib import Path
from typing import Protocol

from ..config import ReaderSettings
from ..errors import EncodingError
from ..logging_setup import get_logger
from ..models import ColumnLayout, RawRecord

logger = get_logger("advanzia2csv.ingest")

# Longest marks first so UTF-32 LE is not mistaken for UTF-16 LE.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)

PDF_SIGNATURE = b"%PDF-"


class StatementReader(Protocol):
    """What the normalizer needs from a reader: a layout and a record stream."""

    layout: ColumnLayout
    source: str | None
    encoding: str | None

    def __iter__(self) -> Iterator[RawRecord]: ...


def _try_decode(data: bytes, encoding: str) -> str | None:
    try:
        text = data.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return None
    # NULs mean a wide encoding was read as a narrow one (e.g. UTF-16 without BOM).
    if "\x00" in text:
        return None
    return text


def decode_statement(
    data: bytes,
    *,
    encoding: str | None = None,
    candidates: tuple[str, ...] = ("utf-8", "cp1252"),
    source: str | None = None,
) -> tuple[str, str]:
    """Decode ``data`` and return ``(text, encoding_used)``.

    A declared ``encoding`` is the only one attempted. Otherwise a byte-order
    mark selects the Unicode codec, and without one each of ``candidates`` is
    tried in order. A leading BOM never reaches the returned text.

    Raises ``EncodingError`` when no attempt succeeds.
    """

    if encoding is not None:
        attempts: tuple[str, ...] = (encoding,)
    else:
        attempts = candidates
        for bom, codec in _BOMS:
            if data.startswith(bom):
                attempts = (codec,)
                break

    for name in attempts:
        text = _try_decode(data, name)
        if text is None:
            logger.debug("decode with %s failed for %s", name, source or "<bytes>")
            continue
        if text.startswith("\ufeff"):
            text = text[1:]
        return text, name

    raise EncodingError(
        "cannot decode statement with any of: " + ", ".join(attempts),
        raw_value=repr(data[:32]),
        source=source,
    )


def open_statement(
    data: bytes,
    *,
    settings: ReaderSettings | None = None,
    source: str | None = None,
) -> StatementReader:
    """Return a single-pass reader for ``data`` (PDF or delimited text)."""

    settings = settings or ReaderSettings()
    if data.startswith(PDF_SIGNATURE):
        from .adapters.advanzia_pdf import AdvanziaPdfReader

        return AdvanziaPdfReader(data, source=source)

    from .adapters.delimited_csv import DelimitedStatementReader

    return DelimitedStatementReader(data, settings=settings, source=source)


def open_statement_path(
    path: str | PathLike[str],
    *,
    settings: ReaderSettings | None = None,
) -> StatementReader:
    """Read ``path`` and return the matching statement reader."""

    p = Path(path)
    return open_statement(p.read_bytes(), settings=settings, source=str(p))


__all__ = [
    "PDF_SIGNATURE",
    "StatementReader",
    "decode_statement",
    "open_statement",
    "open_statement_path",
]
