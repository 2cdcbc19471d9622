"""Canonical CSV output.

Schema (fixed column order)::

    date,amount,currency,description,reference

- ``date``: ISO ``YYYY-MM-DD``.
- ``amount``: fixed-point with exactly the currency's minor-unit digits, ASCII
  dot, leading ``-`` for outflows, no thousands separators.
- ``reference``: empty when absent.

Rows use standard CSV quoting (via the stdlib :mod:`csv` module) and ``\\n``
line endings. The whole document is rendered in memory before anything is
written, so a failed conversion never leaves a partial file behind.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
import os
import stat
import tempfile
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from os import PathLike
from pathlib import Path
from typing import TextIO

from .currency import minor_units
from .errors import MalformedInputError, OutputWriteError
from .logging_setup import get_logger
from .models import Batch, Transaction

logger = get_logger("advanzia2csv.emitter")

CSV_COLUMNS: tuple[str, ...] = ("date", "amount", "currency", "description", "reference")


def format_amount(amount: Decimal, currency: str) -> str:
    """Render ``amount`` with exactly ``currency``'s minor-unit digits."""

    digits = minor_units(currency)
    s = f"{amount:.{digits}f}"
    # Decimal formatting keeps the sign of zero; the schema never shows "-0.00".
    return s[1:] if s.startswith("-") and Decimal(s) == 0 else s


def transaction_row(tx: Transaction) -> list[str]:
    return [
        tx.date.isoformat(),
        format_amount(tx.amount, tx.currency),
        tx.currency,
        tx.description,
        tx.reference or "",
    ]


def render_csv(transactions: Batch | Iterable[Transaction]) -> str:
    """Render the header plus one row per transaction as a single string."""

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for tx in transactions:
        writer.writerow(transaction_row(tx))
    return buf.getvalue()


def write_csv(batch: Batch | Iterable[Transaction], sink: str | PathLike[str] | TextIO) -> int:
    """Write ``batch`` atomically to a path or text stream; returns the row count.

    A path is written through a temporary file in the same directory and then
    renamed over the destination. A stream receives the document in one
    ``write`` call. Raises ``OutputWriteError`` on failure.
    """

    transactions = list(batch)
    document = render_csv(transactions)

    if isinstance(sink, (str, PathLike)):
        _write_path_atomically(Path(sink), document)
        logger.info("%d transaction(s) saved to %s", len(transactions), os.fspath(sink))
    else:
        try:
            sink.write(document)
            sink.flush()
        except (OSError, ValueError) as exc:
            raise OutputWriteError(f"cannot write CSV output: {exc}") from exc
        logger.info("%d transaction(s) written to stream", len(transactions))
    return len(transactions)


def _write_path_atomically(path: Path, document: str) -> None:
    directory = path.parent
    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
        try:
            f = os.fdopen(fd, "w", encoding="utf-8", newline="")
        except BaseException:
            os.close(fd)
            raise
        with f:
            f.write(document)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, _output_mode(path))
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise OutputWriteError(f"cannot write CSV output: {exc}", source=str(path)) from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def _output_mode(path: Path) -> int:
    # Keep an existing file's permissions; a new file gets what open() would give it.
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def read_canonical_csv(text: str) -> list[Transaction]:
    """Parse a document produced by :func:`render_csv` back into transactions.

    Raises ``MalformedInputError`` for a foreign header or an invalid row.
    """

    reader = csv.reader(io.StringIO(text, newline=""))
    header = next(reader, None)
    if header is None or tuple(header) != CSV_COLUMNS:
        raise MalformedInputError(
            "not a canonical CSV document", line_number=1, raw_value=",".join(header or [])
        )
    out: list[Transaction] = []
    for row in reader:
        if not row:
            continue
        if len(row) != len(CSV_COLUMNS):
            raise MalformedInputError(
                f"expected {len(CSV_COLUMNS)} fields, found {len(row)}",
                line_number=reader.line_num,
                raw_value=",".join(row),
            )
        date_s, amount_s, currency, description, reference = row
        try:
            out.append(
                Transaction(
                    date=dt.date.fromisoformat(date_s),
                    amount=Decimal(amount_s),
                    currency=currency,
                    description=description,
                    reference=reference or None,
                )
            )
        except (ValueError, InvalidOperation) as exc:
            raise MalformedInputError(
                f"invalid canonical row: {exc}", line_number=reader.line_num, raw_value=",".join(row)
            ) from exc
    return out


__all__ = [
    "CSV_COLUMNS",
    "format_amount",
    "read_canonical_csv",
    "render_csv",
    "transaction_row",
    "write_csv",
]
