"""CLI for the ``advanzia2csv`` package.

A Typer application converting one Advanzia statement export (or a folder of
them) into the canonical CSV. Environment defaults are loaded from a local
``.env`` via ``python-dotenv`` (never overriding variables already set), then
command-line options take precedence. Business logic lives in
:mod:`advanzia2csv.api`.

Exit codes: ``0`` success, ``1`` conversion or I/O failure, ``2`` invalid
configuration.
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path

import typer
from dotenv import load_dotenv

from .api import convert_paths
from .config import Settings
from .errors import ConfigError, ConversionError
from .logging_setup import configure_logging


class LogLevel(str, Enum):
    error = "error"
    warn = "warn"
    info = "info"
    debug = "debug"
    trace = "trace"


def _fail(message: str, code: int) -> typer.Exit:
    print(f"Error: {message}", file=sys.stderr)
    return typer.Exit(code)


app = typer.Typer(
    add_completion=False,
    help="Convert Advanzia bank statement exports (CSV or PDF) into a canonical CSV.",
)


@app.command()
def convert(
    input_path: Path = typer.Argument(
        ...,
        metavar="INPUT",
        help="Statement file (CSV or PDF) or a folder that contains statement files.",
    ),
    output: str | None = typer.Argument(
        None,
        metavar="[OUTPUT]",
        help="Path to the output CSV file; '-' or omitted writes to standard output.",
    ),
    swap_sign: bool = typer.Option(False, "--swap-sign", help="Swap the sign of every amount."),
    currency: str | None = typer.Option(
        None, help="Currency assumed when the statement has none (default EUR)."
    ),
    encoding: str | None = typer.Option(
        None, help="Input encoding; by default a BOM, UTF-8, then CP1252 are tried."
    ),
    delimiter: str | None = typer.Option(
        None, help="Field delimiter: ',', ';' or 'tab' (detected when omitted)."
    ),
    date_order: str | None = typer.Option(
        None, help="Order of non-ISO dates: DMY (default) or MDY."
    ),
    year_pivot: int | None = typer.Option(
        None, help="Two-digit years >= pivot are 19xx, smaller ones 20xx (default 50)."
    ),
    decimal: str | None = typer.Option(
        None, help="Decimal convention when a file gives no hint: comma (default) or dot."
    ),
    log_level: LogLevel | None = typer.Option(
        None, "--log-level", "-l", case_sensitive=False, help="Log level (default info)."
    ),
) -> None:
    """Convert INPUT into a CSV with columns date,amount,currency,description,reference."""

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level.value if log_level is not None else None)

    try:
        settings = Settings.from_env().with_overrides(
            currency=currency,
            encoding=encoding,
            delimiter=delimiter,
            date_order=date_order,
            year_pivot=year_pivot,
            decimal=decimal,
            swap_sign=True if swap_sign else None,
        )
    except ConfigError as e:
        raise _fail(f"{e.kind}: {e}", 2) from e

    sink = sys.stdout if output in (None, "-") else Path(output)
    try:
        convert_paths([input_path], sink, settings)
    except FileNotFoundError as e:
        raise _fail(f"File not found: {e.filename or input_path}", 1) from e
    except PermissionError as e:
        raise _fail(f"Permission denied: {e.filename or input_path}", 1) from e
    except ConversionError as e:
        raise _fail(f"{e.kind}: {e}", 1) from e


def main() -> None:  # pragma: no cover - console script entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
