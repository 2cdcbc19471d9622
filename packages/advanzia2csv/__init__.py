"""Public interface for the ``advanzia2csv`` package.

This module exposes the conversion API, the settings, the data models and the
error taxonomy as the stable import surface. There is no runtime logic here,
only symbol re-exports.
"""

from .api import collect_statement_paths, convert_bytes, convert_file, convert_paths
from .config import NormalizerSettings, ReaderSettings, Settings
from .duplicates import duplicate_key, merge_batches
from .emitter import CSV_COLUMNS, read_canonical_csv, render_csv, write_csv
from .errors import (
    ConfigError,
    ConversionError,
    EncodingError,
    MalformedInputError,
    OutputWriteError,
    UnparseableAmountError,
    UnparseableDateError,
    UnsupportedCurrencyError,
)
from .models import Batch, ColumnLayout, DecimalConvention, RawRecord, Transaction
from .normalizers import TransactionNormalizer, normalize_records

__all__ = [
    # API
    "collect_statement_paths",
    "convert_bytes",
    "convert_file",
    "convert_paths",
    "merge_batches",
    "duplicate_key",
    "normalize_records",
    "TransactionNormalizer",
    "render_csv",
    "write_csv",
    "read_canonical_csv",
    "CSV_COLUMNS",
    # Settings
    "Settings",
    "ReaderSettings",
    "NormalizerSettings",
    # Models / types
    "RawRecord",
    "ColumnLayout",
    "DecimalConvention",
    "Transaction",
    "Batch",
    # Errors
    "ConversionError",
    "EncodingError",
    "MalformedInputError",
    "UnparseableDateError",
    "UnparseableAmountError",
    "UnsupportedCurrencyError",
    "OutputWriteError",
    "ConfigError",
]
