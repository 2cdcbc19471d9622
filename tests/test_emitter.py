import datetime as dt
import io
import os
import stat
from decimal import Decimal
from pathlib import Path

import pytest

from advanzia2csv.emitter import format_amount, read_canonical_csv, render_csv, write_csv
from advanzia2csv.errors import MalformedInputError, OutputWriteError
from advanzia2csv.models import Batch, Transaction


def _batch() -> Batch:
    return Batch(
        transactions=(
            Transaction(dt.date(2024, 2, 1), Decimal("-12.50"), "EUR", "Supermarket", "REF1"),
            Transaction(dt.date(2024, 2, 2), Decimal("1234.00"), "EUR", 'Shop, "Main"\nStreet'),
            Transaction(dt.date(2024, 2, 3), Decimal("-1500"), "JPY", "Tokyo"),
        )
    )


def test_render_csv_schema_and_quoting():
    assert render_csv(_batch()) == (
        "date,amount,currency,description,reference\n"
        "2024-02-01,-12.50,EUR,Supermarket,REF1\n"
        '2024-02-02,1234.00,EUR,"Shop, ""Main""\nStreet",\n'
        "2024-02-03,-1500,JPY,Tokyo,\n"
    )


def test_empty_batch_renders_header_only():
    assert render_csv(Batch(transactions=())) == "date,amount,currency,description,reference\n"


def test_format_amount_never_shows_negative_zero():
    assert format_amount(Decimal("-0.00"), "EUR") == "0.00"
    assert format_amount(Decimal("-0.50"), "EUR") == "-0.50"
    assert format_amount(Decimal("1.500"), "KWD") == "1.500"


def test_round_trip_reproduces_transactions():
    batch = _batch()
    assert read_canonical_csv(render_csv(batch)) == list(batch.transactions)


def test_read_canonical_csv_rejects_foreign_documents():
    with pytest.raises(MalformedInputError):
        read_canonical_csv("Datum;Betrag\n01.02.2024;-1,00\n")
    with pytest.raises(MalformedInputError) as ei:
        read_canonical_csv("date,amount,currency,description,reference\n2024-02-01,-1.5,EUR,x,\n")
    assert ei.value.line_number == 2


def test_write_csv_to_stream():
    buf = io.StringIO()
    assert write_csv(_batch(), buf) == 3
    assert buf.getvalue() == render_csv(_batch())


def test_write_csv_to_path_replaces_atomically(tmp_path: Path):
    out = tmp_path / "out.csv"
    old = os.umask(0o022)
    try:
        write_csv(_batch(), out)
        assert stat.S_IMODE(out.stat().st_mode) == 0o644
        out.write_text("stale\n", encoding="utf-8")
        write_csv(_batch(), out)
    finally:
        os.umask(old)
    assert out.read_bytes().decode("utf-8") == render_csv(_batch())
    assert stat.S_IMODE(out.stat().st_mode) == 0o644
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.csv"]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_existing_output_keeps_its_permissions(tmp_path: Path):
    out = tmp_path / "out.csv"
    out.write_text("stale\n", encoding="utf-8")
    out.chmod(0o640)
    write_csv(_batch(), out)
    assert stat.S_IMODE(out.stat().st_mode) == 0o640


def test_fdopen_failure_closes_the_temporary_descriptor(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    closed: list[int] = []
    real_close = os.close

    def fail_fdopen(fd, *args, **kwargs):
        raise OSError("no buffers")

    def record_close(fd):
        closed.append(fd)
        real_close(fd)

    monkeypatch.setattr(os, "fdopen", fail_fdopen)
    monkeypatch.setattr(os, "close", record_close)
    with pytest.raises(OutputWriteError) as ei:
        write_csv(_batch(), tmp_path / "out.csv")
    assert "no buffers" in str(ei.value)
    assert len(closed) == 1
    assert list(tmp_path.iterdir()) == []


def test_failed_path_write_leaves_no_partial_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    out = tmp_path / "out.csv"

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", fail_replace)
    with pytest.raises(OutputWriteError) as ei:
        write_csv(_batch(), out)
    assert "disk full" in str(ei.value)
    assert list(tmp_path.iterdir()) == []


def test_missing_output_directory_is_output_write_error(tmp_path: Path):
    with pytest.raises(OutputWriteError):
        write_csv(_batch(), tmp_path / "missing" / "out.csv")


def test_closed_stream_is_output_write_error():
    buf = io.StringIO()
    buf.close()
    with pytest.raises(OutputWriteError):
        write_csv(_batch(), buf)
