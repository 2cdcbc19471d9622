"""Pytest configuration for test isolation.

The conversion settings and the log level can come from ``ADVANZIA2CSV_*``
environment variables (directly or through a ``.env`` file picked up by the
CLI). A developer shell with any of them exported would change parsing
behavior under test, so an autouse fixture removes them for every test and
resets the package logger so each CLI invocation configures it afresh.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `advanzia2csv` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
if str(_PKG_DIR) not in sys.path:
    sys.path.insert(0, str(_PKG_DIR))

from advanzia2csv.logging_setup import reset_logging  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run each test in its own directory with no ``ADVANZIA2CSV_*`` variables."""

    for name in list(os.environ):
        if name.startswith("ADVANZIA2CSV_"):
            monkeypatch.delenv(name, raising=False)
    # Keep a stray .env in the checkout out of CLI tests.
    monkeypatch.chdir(tmp_path)
    reset_logging()
    yield
    reset_logging()
