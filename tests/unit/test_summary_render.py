from __future__ import annotations

import doctest

import lot_inventory.services.summary as summary_module
from lot_inventory.models import ImportResult, ImportStatus, LotRecord, UpsertCounts
from lot_inventory.services.summary import render_summary_line


def _result(**kw) -> ImportResult:
    base = dict(project="MVLC", status=ImportStatus.CLEAN, inserted=1, updated=1, header_row=0)
    base.update(kw)
    return ImportResult(**base)


def test_docstring_examples():
    assert doctest.testmod(summary_module).failed == 0


def test_remote_counts_rendered():
    rec = LotRecord("A-1", 1, 100.0, "Regular", "Open")
    line = render_summary_line(_result(records=[rec, rec], skipped_rows=2, remote=UpsertCounts(inserted=1, updated=1)))
    assert line == (
        "SUMMARY project=MVLC rows=2 inserted=1 updated=1 skipped=2 status=clean remote=inserted=1,updated=1"
    )


def test_remote_failure_rendered():
    line = render_summary_line(
        _result(status=ImportStatus.REMOTE_FAILED, remote=UpsertCounts(inserted=3), remote_error="boom")
    )
    assert line.endswith("status=remote_failed remote=failed")


def test_degraded_local_only():
    assert render_summary_line(_result(status=ImportStatus.DEGRADED)).endswith("status=degraded remote=off")
