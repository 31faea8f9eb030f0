from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..lookups import canonical_category
from ..models.lot_record import LotRecord
from .header import HeaderMap, resolve_header_map

"""Row normalization: header-indexed raw cells -> LotRecord.

Category resolution order:
1. explicit Category column, canonicalized (c / cc / p / pc / rc / r aliases)
2. otherwise inferred from the letters of the PHASE code
   (PC > CC > RC > C > P > Regular)
3. a ``K`` in the PHASE code marks a corner lot and upgrades the base
   category to its corner variant (applies after 1 and 2)
"""

__all__ = [
    "NormalizedRows",
    "is_blank_row",
    "extract_phase_number",
    "parse_size",
    "category_from_column",
    "category_from_phase",
    "apply_corner_rule",
    "normalize_row",
    "normalize_rows",
]

_DIGITS_RE = re.compile(r"(\d+)")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_FLOAT_PREFIX_RE = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")

# PHASE コード内の文字 -> カテゴリ (上から順に判定)
_PHASE_CODE_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("PC", "Prime Corner"),
    ("CC", "Commercial Corner"),
    ("RC", "Regular Corner"),
    ("C", "Commercial"),
    ("P", "Prime"),
)

_CORNER_UPGRADES: dict[str, str] = {
    "commercial": "Commercial Corner",
    "prime": "Prime Corner",
    "regular": "Regular Corner",
    "": "Regular Corner",
}


@dataclass
class NormalizedRows:
    """Records produced from one sheet plus the source rows that were dropped."""
    records: list[LotRecord] = field(default_factory=list)
    blank_rows: list[int] = field(default_factory=list)  # 全セル空 (エラー扱いしない)
    missing_lot_rows: list[int] = field(default_factory=list)  # lot 番号なし

    @property
    def skipped(self) -> int:
        return len(self.blank_rows) + len(self.missing_lot_rows)


def _cell(row: Sequence[Any], idx: int | None) -> str:
    if idx is None or idx < 0 or idx >= len(row):
        return ""
    val = row[idx]
    return "" if val is None else str(val).strip()


def is_blank_row(row: Sequence[Any] | None) -> bool:
    return not row or all(("" if c is None else str(c)).strip() == "" for c in row)


def extract_phase_number(phase_raw: str) -> int | None:
    """First run of digits in the phase cell (``"2-PC"`` -> 2)."""
    m = _DIGITS_RE.search(phase_raw or "")
    return int(m.group(1)) if m else None


def parse_size(size_raw: str) -> float:
    """Parse a size cell such as ``"120 sqm"`` or ``"1,250.5"``.

    Everything but digits, ``.`` and ``-`` is removed and the leading float of
    the remainder is taken; unparsable input yields 0.
    """
    m = _FLOAT_PREFIX_RE.match(_NON_NUMERIC_RE.sub("", size_raw or ""))
    return float(m.group(0)) if m else 0.0


def category_from_column(raw: str) -> str:
    """Canonical label for an explicit category cell ('' stays '')."""
    return canonical_category(raw) if raw else ""


def category_from_phase(phase_raw: str) -> str:
    uc = (phase_raw or "").upper()
    for token, label in _PHASE_CODE_CATEGORIES:
        if token in uc:
            return label
    return "Regular"


def apply_corner_rule(category: str, phase_raw: str) -> str:
    """Upgrade to the corner variant when the phase code contains ``K``."""
    if "K" not in (phase_raw or "").upper():
        return category
    key = (category or "").lower()
    if "corner" in key:
        return category
    return _CORNER_UPGRADES.get(key, category)


def normalize_row(header_map: HeaderMap, row: Sequence[Any]) -> LotRecord | None:
    """Normalize one data row. Returns None for rows that must be dropped
    (all cells blank, or no lot number)."""
    if is_blank_row(row):
        return None
    lot_number = _cell(row, header_map.get("lot"))
    if not lot_number:
        return None

    phase_raw = _cell(row, header_map.get("phase"))
    category = category_from_column(_cell(row, header_map.get("category")))
    if not category:
        category = category_from_phase(phase_raw)
    category = apply_corner_rule(category, phase_raw)

    return LotRecord(
        lot_number=lot_number,
        phase=extract_phase_number(phase_raw),
        size=parse_size(_cell(row, header_map.get("size"))),
        category=category,
        status=_cell(row, header_map.get("status")),
        last_updated=_cell(row, header_map.get("rsvDate")) or None,
    )


def normalize_rows(
    rows: Sequence[Sequence[Any]],
    header_index: int,
    header_map: HeaderMap | None = None,
) -> NormalizedRows:
    """Normalize every row after ``header_index``.

    ``header_map`` defaults to the map resolved from ``rows[header_index]``.
    """
    if header_map is None:
        header_map = resolve_header_map(rows[header_index] if rows else [])
    out = NormalizedRows()
    for idx in range(header_index + 1, len(rows)):
        row = rows[idx]
        if is_blank_row(row):
            out.blank_rows.append(idx)
            continue
        record = normalize_row(header_map, row)
        if record is None:
            out.missing_lot_rows.append(idx)
            continue
        out.records.append(record)
    return out
