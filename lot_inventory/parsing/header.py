from __future__ import annotations

from collections.abc import Sequence
from typing import Any

"""Header row detection for uploaded inventory sheets.

Exports from the sales spreadsheets often start with title rows or blank
rows, so the header is not assumed to be the first line. Each candidate row
is scored by how many canonical fields it names (one point per field group),
and the highest scoring row within the first ``max_scan`` rows wins.
"""

__all__ = [
    "FIELD_ALIASES",
    "DEFAULT_MAX_SCAN",
    "HeaderMap",
    "header_score",
    "find_header_row_index",
    "resolve_header_map",
]

DEFAULT_MAX_SCAN = 20

# canonical field -> 列名エイリアス (正規化後: trim + lower)。順序 = 優先度
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "lot": ("lot", "lot #", "lot no", "lot number", "lot#", "lot_num", "lotnum", "lot code"),
    "phase": ("phase", "phases"),
    "size": ("lot area", "size (sqm)", "size", "sqm"),
    "status": ("status",),
    "category": ("category", "cat"),
    "rsvDate": ("rsv date", "reservation date", "last updated", "updated", "date"),
}

HeaderMap = dict[str, int | None]


def _norm(cell: Any) -> str:
    return "" if cell is None else str(cell).strip().lower()


def header_score(row: Sequence[Any] | None) -> int:
    """Number of field groups with at least one alias present in ``row``."""
    cells = {_norm(c) for c in (row or ())}
    return sum(1 for aliases in FIELD_ALIASES.values() if any(a in cells for a in aliases))


def find_header_row_index(rows: Sequence[Sequence[Any]], max_scan: int = DEFAULT_MAX_SCAN) -> int:
    """Index of the best header candidate among the first ``max_scan`` rows.

    Ties keep the earliest row. Falls back to 0 (also for an empty matrix).
    """
    best = 0
    best_score = -1
    for idx in range(min(len(rows), max_scan)):
        score = header_score(rows[idx])
        if score > best_score:
            best_score = score
            best = idx
    return best


def resolve_header_map(header_row: Sequence[Any]) -> HeaderMap:
    """Map each canonical field to its column index (None when absent).

    Aliases are tried in priority order; the first alias present wins even if
    a lower-priority alias appears further left.
    """
    headers = [_norm(c) for c in header_row]
    mapping: HeaderMap = {}
    for field, aliases in FIELD_ALIASES.items():
        mapping[field] = next((headers.index(a) for a in aliases if a in headers), None)
    return mapping
