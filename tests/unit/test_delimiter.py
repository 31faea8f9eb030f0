from __future__ import annotations

import pytest

from lot_inventory.parsing.delimiter import CANDIDATES, SCAN_LIMIT, detect_delimiter


@pytest.mark.parametrize(
    "text, expected",
    [
        ("lot,phase,size\n1,2,3", ","),
        ("lot;phase;size\n1;2;3", ";"),
        ("lot\tphase\tsize\n1\t2\t3", "\t"),
        ("", ","),
        ("no delimiters here", ","),
    ],
)
def test_detect_delimiter_basic(text: str, expected: str):
    assert detect_delimiter(text) == expected


def test_only_first_line_is_counted():
    # 2 行目以降の ; は数えない
    assert detect_delimiter("a,b\nc;d;e;f;g") == ","


def test_quoted_delimiters_are_ignored():
    assert detect_delimiter('"a;b;c;d",x,y\n') == ","


def test_doubled_quote_does_not_toggle_quote_state():
    # "" は リテラル引用符: クォート内の ; は数えない
    assert detect_delimiter('"say ""hi"";there";a;b,c\n') == ";"


def test_newline_inside_quotes_does_not_end_scan():
    assert detect_delimiter('"multi\nline";a;b\n1,2,3,4,5') == ";"


def test_ties_resolve_in_candidate_order():
    assert detect_delimiter("a,b;c") == ","
    assert detect_delimiter("a;b\tc") == ";"


def test_scan_is_limited():
    text = "x" * SCAN_LIMIT + ";;;;"
    assert detect_delimiter(text) == ","


@pytest.mark.parametrize("text", ["a,b", 'x";;\t', "\t\t;", "\"\"\"", "é;ü\r\n"])
def test_result_is_candidate_and_deterministic(text: str):
    first = detect_delimiter(text)
    assert first in CANDIDATES
    assert detect_delimiter(text) == first
