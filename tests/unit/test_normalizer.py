from __future__ import annotations

import pytest

from lot_inventory.parsing.header import resolve_header_map
from lot_inventory.parsing.normalizer import (
    apply_corner_rule,
    category_from_column,
    category_from_phase,
    extract_phase_number,
    is_blank_row,
    normalize_row,
    normalize_rows,
    parse_size,
)


def test_end_to_end_example():
    rows = [
        ["LOT", "PHASE", "SIZE", "STATUS"],
        ["A-1", "1K", "120", "Open"],
        ["A-2", "2C", "90", "Sold"],
    ]
    out = normalize_rows(rows, 0)
    assert [r.import_fields() for r in out.records] == [
        {"lot_number": "A-1", "phase": 1, "size": 120, "category": "Regular Corner", "status": "Open", "last_updated": None},
        {"lot_number": "A-2", "phase": 2, "size": 90, "category": "Commercial", "status": "Sold", "last_updated": None},
    ]
    assert out.skipped == 0


@pytest.mark.parametrize(
    "phase_raw, expected",
    [
        ("1-PK", "Prime Corner"),
        ("2-C", "Commercial"),
        ("3", "Regular"),
        ("2-CK", "Commercial Corner"),
        ("1-PC", "Prime Corner"),
        ("2-CC", "Commercial Corner"),
        ("3-RC", "Regular Corner"),
        ("1K", "Regular Corner"),
        ("", "Regular"),
    ],
)
def test_category_inferred_from_phase(phase_raw: str, expected: str):
    assert apply_corner_rule(category_from_phase(phase_raw), phase_raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("rc", "Regular Corner"),
        ("CC", "Commercial Corner"),
        ("p", "Prime"),
        ("prime_corner", "Prime Corner"),
        (" Premium ", "Premium"),
        ("", ""),
    ],
)
def test_category_from_column(raw: str, expected: str):
    assert category_from_column(raw) == expected


def test_explicit_category_wins_over_phase_letters_but_k_still_applies():
    hm = resolve_header_map(["lot", "phase", "size", "status", "category"])
    rec = normalize_row(hm, ["B-1", "2-CK", "100", "open", "Prime"])
    assert rec is not None
    assert rec.category == "Prime Corner"


def test_corner_rule_keeps_unknown_and_corner_categories():
    assert apply_corner_rule("Premium", "1K") == "Premium"
    assert apply_corner_rule("Regular Corner", "1K") == "Regular Corner"
    assert apply_corner_rule("Prime", "2") == "Prime"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("120", 120.0),
        ("120 sqm", 120.0),
        ("1,250.5", 1250.5),
        ("-5", -5.0),
        ("12.5.3", 12.5),
        ("abc", 0.0),
        ("", 0.0),
    ],
)
def test_parse_size(raw: str, expected: float):
    assert parse_size(raw) == expected


def test_extract_phase_number():
    assert extract_phase_number("Phase 2-PC") == 2
    assert extract_phase_number("12K") == 12
    assert extract_phase_number("none") is None


def test_blank_and_missing_lot_rows_are_reported():
    rows = [
        ["Lot", "Phase", "Status"],
        ["", " ", ""],
        ["", "1", "Open"],
        ["C-3", "1", "Sold"],
        [],
    ]
    out = normalize_rows(rows, 0)
    assert [r.lot_number for r in out.records] == ["C-3"]
    assert out.blank_rows == [1, 4]
    assert out.missing_lot_rows == [2]
    assert out.skipped == 3
    assert is_blank_row([None, "  "])


def test_short_rows_and_missing_columns_read_as_empty():
    hm = resolve_header_map(["lot", "phase", "size", "status", "category", "rsv date"])
    rec = normalize_row(hm, ["D-4"])
    assert rec is not None
    assert rec.phase is None
    assert rec.size == 0.0
    assert rec.category == "Regular"
    assert rec.status == ""
    assert rec.last_updated is None


def test_rows_before_header_are_ignored():
    rows = [["junk"], ["Lot", "Phase"], ["E-5", "3"]]
    out = normalize_rows(rows, 1)
    assert [r.lot_number for r in out.records] == ["E-5"]
    assert out.records[0].phase == 3
