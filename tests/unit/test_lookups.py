from __future__ import annotations

import pytest

from lot_inventory.lookups import (
    canonical_category,
    format_category_label,
    format_currency,
    format_date,
    format_status_label,
    normalize_category_key,
    status_matches,
    to_store_category,
    to_store_status,
    to_title_case,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Regular_Corner", "regular corner"),
        ("  Prime Corner ", "prime corner"),
        ("commercial-corner", "commercial corner"),
        ("Regular   Corner", "regular corner"),
        (None, ""),
    ],
)
def test_normalize_category_key(raw, expected):
    assert normalize_category_key(raw) == expected


def test_status_matches_treats_available_as_open():
    assert status_matches("Available", "open")
    assert status_matches("OPEN", "available")
    assert not status_matches("sold", "open")


def test_labels_fall_back_to_title_case():
    assert format_category_label("regular_corner") == "Regular Corner"
    assert format_category_label("lake view") == "Lake View"
    assert format_status_label("available") == "Open"
    assert format_status_label("on_hold") == "On Hold"
    assert to_title_case("a  b") == "A  B"


def test_canonical_category():
    assert canonical_category(" pc ") == "Prime Corner"
    assert canonical_category("c") == "Commercial"
    assert canonical_category("Premium") == "Premium"
    assert canonical_category(None) == "Regular"


def test_store_spellings():
    assert to_store_category("Regular Corner") == "regular_corner"
    assert to_store_category("PC") == "prime_corner"
    assert to_store_category("Lake View") == "lake_view"
    assert to_store_status("Open") == "available"
    assert to_store_status("RSV") == "reserved"
    assert to_store_status("Sold") == "sold"
    assert to_store_status("") is None
    assert to_store_status("On Hold") == "on hold"


def test_format_currency():
    assert format_currency(1234.5) == "₱1,234.50"
    assert format_currency("1000") == "₱1,000.00"
    assert format_currency(-5) == "-₱5.00"
    assert format_currency("abc") == ""
    assert format_currency(None) == ""


def test_format_date():
    assert format_date("2024-01-05") == "January 5, 2024"
    assert format_date("2024-12-31T10:00:00") == "December 31, 2024"
    assert format_date("not a date") == ""
    assert format_date(None) == ""
