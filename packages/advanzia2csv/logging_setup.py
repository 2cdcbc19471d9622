"""Centralized logging configuration for the ``advanzia2csv`` package.

Two public helpers:

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger (``"advanzia2csv"``). Called once by the CLI at startup.
- ``get_logger(name)``: acquire a logger by name, ensuring the package root
  logger has at least a ``NullHandler`` when nothing has been configured so
  library use stays silent.

Library modules never attach their own handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "advanzia2csv"
_LEVEL_ENV = "ADVANZIA2CSV_LOG_LEVEL"
_DEFAULT_FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"
_CONFIGURED = False


def _level_from_name(name: str) -> int | None:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    # Short spellings accepted by the CLI's --log-level choices.
    if name == "WARN":
        return logging.WARNING
    if name == "TRACE":
        return logging.DEBUG
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        parsed = _level_from_name(level)
        if parsed is not None:
            return parsed
    # Env override when no usable explicit level was given
    env_val = os.getenv(_LEVEL_ENV)
    if env_val:
        parsed = _level_from_name(env_val)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level name (``"INFO"``, ``"warn"``,
        ``"trace"``). When ``None``, ``ADVANZIA2CSV_LOG_LEVEL`` is consulted,
        falling back to ``logging.INFO``.
    fmt:
        Optional format string; defaults to
        ``"[%(asctime)s][%(name)s][%(levelname)s] %(message)s"``.
    stream:
        Output stream for the handler; defaults to ``sys.stderr`` so that CSV
        written to stdout is never interleaved with log lines.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT, "%Y-%m-%d %H:%M:%S"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


def reset_logging() -> None:
    """Detach configured handlers so ``configure_logging`` can run again."""

    global _CONFIGURED
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    _CONFIGURED = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, ensuring safe defaults for library use."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging"]
