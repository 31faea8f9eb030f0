from __future__ import annotations

import json
import re
from pathlib import Path

from lot_inventory.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "row", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(file="lots.csv", row=4, error_type="ROWS_SKIPPED", message="no lot number")
    data = json.loads(rec.to_json_line())
    assert data["file"] == "lots.csv"
    assert data["row"] == 4
    assert data["error_type"] == "ROWS_SKIPPED"
    assert data["timestamp"].endswith("Z")
    assert set(data) == KEYS


def test_non_ascii_is_kept():
    rec = ErrorRecord.create("ñ.csv", -1, "EMPTY_FILE", "₱")
    assert "ñ.csv" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer(temp_workdir / "logs")
    buf.append(ErrorRecord.create("f.csv", -1, "EMPTY_FILE", "empty"))
    buf.append(ErrorRecord.create("f.csv", 3, "COLUMN_MISSING", "columns not found: size"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    assert all(set(json.loads(l)) == KEYS for l in lines)
    assert len(buf) == 0


def test_flush_appends_to_same_file(temp_workdir: Path):
    buf = ErrorLogBuffer(temp_workdir / "logs")
    buf.append(ErrorRecord.create("f.csv", 1, "X", "a"))
    first = buf.flush()
    buf.append(ErrorRecord.create("f.csv", 2, "X", "b"))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2


def test_empty_buffer_creates_nothing(temp_workdir: Path):
    target = temp_workdir / "nested" / "logs"
    assert ErrorLogBuffer(target).flush() is None
    assert not target.exists()
