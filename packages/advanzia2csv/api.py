"""Public conversion API for the ``advanzia2csv`` package.

The pipeline runs strictly Reader → Normalizer → Emitter, one statement file
at a time:

- :func:`convert_bytes` / :func:`convert_file` turn one statement into a
  :class:`~advanzia2csv.models.Batch`;
- :func:`convert_paths` converts a file or a folder of statements, merges the
  batches while dropping carried-over transactions, and writes the CSV.

Settings are always passed in explicitly; nothing here reads the environment.
"""

from __future__ import annotations

from collections.abc import Iterable
from os import PathLike
from pathlib import Path
from typing import TextIO

from .config import Settings
from .duplicates import merge_batches
from .emitter import write_csv
from .errors import ConversionError, MalformedInputError
from .ingest.utils import open_statement
from .logging_setup import get_logger
from .models import Batch
from .normalizers import TransactionNormalizer

logger = get_logger("advanzia2csv.api")

STATEMENT_SUFFIXES: tuple[str, ...] = (".pdf", ".csv", ".txt")


def convert_bytes(
    data: bytes,
    settings: Settings | None = None,
    *,
    source: str | None = None,
) -> Batch:
    """Convert one in-memory statement export into a batch."""

    settings = settings or Settings()
    reader = open_statement(data, settings=settings.reader, source=source)
    return TransactionNormalizer(settings.normalizer).normalize(reader, reader.layout, source=source)


def convert_file(path: str | PathLike[str], settings: Settings | None = None) -> Batch:
    """Convert the statement at ``path`` into a batch."""

    p = Path(path)
    batch = convert_bytes(p.read_bytes(), settings, source=str(p))
    logger.info("loaded %d transaction(s) from %s", len(batch), p)
    return batch


def collect_statement_paths(path: str | PathLike[str]) -> list[Path]:
    """Return ``[path]`` for a file, or every statement file below a folder.

    Folder contents are searched recursively and returned in sorted order so
    repeated runs read statements in the same sequence.
    """

    p = Path(path)
    if not p.is_dir():
        return [p]
    found = sorted(
        f for f in p.rglob("*") if f.is_file() and f.suffix.lower() in STATEMENT_SUFFIXES
    )
    if not found:
        raise MalformedInputError(
            "no statement files found (expected " + ", ".join(STATEMENT_SUFFIXES) + ")",
            source=str(p),
        )
    return found


def convert_paths(
    inputs: Iterable[str | PathLike[str]],
    output: str | PathLike[str] | TextIO,
    settings: Settings | None = None,
) -> Batch:
    """Convert every statement under ``inputs`` and write one CSV to ``output``.

    A single statement keeps its source order. Several statements are merged
    with carried-over transactions removed and stably sorted by date. Any
    conversion error aborts before anything is written.
    """

    paths: list[Path] = []
    for item in inputs:
        paths.extend(collect_statement_paths(item))

    batches: list[Batch] = []
    for p in paths:
        try:
            batches.append(convert_file(p, settings))
        except ConversionError as exc:
            raise exc.with_source(str(p))

    if len(batches) == 1:
        batch = batches[0]
    else:
        batch = merge_batches(batches, sort_by_date=True)

    if not batch.transactions:
        raise MalformedInputError(
            "no transactions found", source=", ".join(str(p) for p in paths) or None
        )

    write_csv(batch, output)
    return batch


__all__ = [
    "STATEMENT_SUFFIXES",
    "collect_statement_paths",
    "convert_bytes",
    "convert_file",
    "convert_paths",
]
