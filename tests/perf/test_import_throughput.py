from __future__ import annotations

import importlib.util
import time
from pathlib import Path

from lot_inventory.excel.reader import read_upload_rows
from lot_inventory.services.orchestrator import import_rows

"""Throughput smoke test: parse + normalize + reconcile of a generated upload.

Budget is deliberately loose so CI stays stable; it catches accidental
quadratic behaviour, not small regressions.
"""

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ROWS = 5_000


def _load_generator():
    spec = importlib.util.spec_from_file_location(
        "gen_sample_inventory", PROJECT_ROOT / "scripts" / "gen_sample_inventory.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_import_rows_throughput(tmp_path: Path):
    path = _load_generator().write_inventory(tmp_path / "perf.csv", ROWS)
    start = time.perf_counter()
    rows = read_upload_rows(path)
    first = import_rows(rows, "MVLC")
    second = import_rows(rows, "MVLC", first.merged)
    elapsed = time.perf_counter() - start
    assert first.inserted == ROWS
    assert second.updated == ROWS
    assert elapsed < 15.0, f"import too slow: {elapsed:.2f}s for {ROWS} rows x2"
