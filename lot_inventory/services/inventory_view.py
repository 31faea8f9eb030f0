from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..lookups import (
    format_category_label,
    format_currency,
    format_date,
    format_status_label,
    normalize_category_key,
    status_matches,
)
from .pricing import PriceMap, is_scoped_project, price_lots

"""Inventory listing: filter, natural sort and display formatting."""

__all__ = ["phase_slug", "filter_lots", "sort_lots", "render_rows", "DISPLAY_COLUMNS"]

DISPLAY_COLUMNS: tuple[str, ...] = (
    "lot_number",
    "phase",
    "size",
    "price_per_sqm",
    "total",
    "category",
    "status",
    "last_updated",
)

_UNKNOWN_PHASE = 9999
_DIGITS_RE = re.compile(r"\d+")
_CHUNK_RE = re.compile(r"(\d+)")


def _phase_number(phase: Any) -> int | None:
    if isinstance(phase, int) and not isinstance(phase, bool):
        return phase
    m = _DIGITS_RE.search(str(phase if phase is not None else ""))
    return int(m.group(0)) if m else None


def phase_slug(phase: Any) -> str:
    """``phase-N`` for a lot phase, ``""`` when it has no number."""
    n = _phase_number(phase)
    return f"phase-{n}" if n else ""


def _category_selected(category: Any, selected: str) -> bool:
    row = normalize_category_key(category)
    if row == selected:
        return True
    # "commercial" は commercial 系全体 (commercial corner を除く) に一致
    return selected == "commercial" and row.startswith("commercial") and row != "commercial corner"


def filter_lots(
    lots: Iterable[Mapping[str, Any]],
    project: str,
    *,
    category: str = "all",
    status: str = "all",
    phase: str = "all",
) -> list[dict[str, Any]]:
    """Filter by category, status and (MVLC only) phase slug; ``all`` disables a filter."""
    cat_sel = normalize_category_key(category)
    status_sel = status.strip().lower()
    phase_sel = phase.strip().lower()
    out: list[dict[str, Any]] = []
    for lot in lots:
        if cat_sel != "all" and not _category_selected(lot.get("category"), cat_sel):
            continue
        if status_sel != "all" and not status_matches(lot.get("status"), status_sel):
            continue
        if is_scoped_project(project) and phase_sel != "all" and phase_slug(lot.get("phase")) != phase_sel:
            continue
        out.append(dict(lot))
    return out


def _natural_key(text: Any) -> list[Any]:
    parts = _CHUNK_RE.split(str(text or "").lower())
    return [(0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts if p]


def sort_lots(lots: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Order by phase number (missing last), then lot number naturally ("2" < "10")."""
    def key(lot: Mapping[str, Any]) -> tuple[int, list[Any]]:
        n = _phase_number(lot.get("phase"))
        return (n if n is not None else _UNKNOWN_PHASE, _natural_key(lot.get("lot_number")))
    return [dict(l) for l in sorted(lots, key=key)]


def _number(v: Any) -> float:
    try:
        return float(v or 0)
    except (TypeError, ValueError):
        return 0.0


def render_rows(
    lots: Iterable[Mapping[str, Any]],
    project: str,
    price_maps: Mapping[str | None, PriceMap] | None = None,
) -> list[dict[str, str]]:
    """Display strings for each lot.

    Server price tables (MVLC) take precedence over the stored price_per_sqm;
    total is recomputed from size when a price is known.
    """
    lots = list(lots)
    server: list[dict[str, Any]]
    if is_scoped_project(project) and price_maps:
        server = price_lots(lots, project, price_maps)
    else:
        server = [{} for _ in lots]
    rows: list[dict[str, str]] = []
    for lot, priced in zip(lots, server, strict=True):
        size = _number(lot.get("size"))
        ppsqm = _number(lot.get("price_per_sqm"))
        if priced.get("price_per_sqm") is not None:
            ppsqm = priced["price_per_sqm"]
        total = ppsqm * size if ppsqm and size else _number(lot.get("total"))
        phase = lot.get("phase")
        rows.append({
            "lot_number": str(lot.get("lot_number") or ""),
            "phase": "" if phase is None else str(phase),
            "size": f"{size:g}" if size else "",
            "price_per_sqm": format_currency(ppsqm) if ppsqm else "",
            "total": format_currency(total) if total else "",
            "category": format_category_label(lot.get("category")),
            "status": format_status_label(lot.get("status")),
            "last_updated": format_date(lot.get("last_updated")),
        })
    return rows
