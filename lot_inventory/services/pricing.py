from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..lookups import normalize_category_key

"""Category price tables and derived lot prices.

Prices are per square metre and keyed by normalized category key
("regular corner"). The MVLC project keeps one table per phase group
(``phase1``, ``phase2``, ``phase3``); every other project has a single
unscoped table.
"""

__all__ = [
    "PriceMap",
    "MVLC",
    "SCOPES",
    "PRICE_COLUMNS",
    "is_scoped_project",
    "scope_for_phase",
    "scope_phase_value",
    "expand_scope",
    "default_categories",
    "price_row_to_map",
    "map_to_price_row",
    "parse_price_inputs",
    "price_for",
    "price_lots",
    "apply_prices",
]

PriceMap = dict[str, float]

MVLC = "MVLC"
SCOPES: tuple[str, ...] = ("phase1", "phase2", "phase3")
# mvlc_price テーブルの列
PRICE_COLUMNS: tuple[str, ...] = (
    "regular",
    "prime",
    "regular_corner",
    "prime_corner",
    "commercial",
    "commercial_corner",
)


def is_scoped_project(project: str | None) -> bool:
    return (project or "").upper() == MVLC


def scope_for_phase(phase: Any) -> str:
    """Phase group of a lot phase. Unknown or missing phases fall in phase3."""
    if isinstance(phase, int) and not isinstance(phase, bool):
        return "phase1" if phase == 1 else "phase2" if phase == 2 else "phase3"
    text = str(phase if phase is not None else "").lower()
    if "1" in text:
        return "phase1"
    if "2" in text:
        return "phase2"
    return "phase3"


def scope_phase_value(scope: str) -> int:
    """Phase column value used to read a scope's price row (default phase 2)."""
    return 1 if scope == "phase1" else 3 if scope == "phase3" else 2


def expand_scope(scope: str) -> list[int]:
    """Phase values written by a price save. ``phase13`` covers phases 1 and 3."""
    if scope == "phase13":
        return [1, 3]
    return [scope_phase_value(scope)]


def default_categories(project: str, scope: str | None = None) -> list[str]:
    if is_scoped_project(project):
        if scope == "phase2":
            return ["Regular", "Regular Corner", "Prime", "Prime Corner"]
        return ["Regular", "Regular Corner", "Commercial", "Commercial Corner"]
    return ["Premium", "Standard"]


def price_row_to_map(row: Mapping[str, Any] | None) -> PriceMap:
    """Convert a ``mvlc_price`` row into a PriceMap (NULL columns dropped)."""
    if not row:
        return {}
    out: PriceMap = {}
    for col in PRICE_COLUMNS:
        val = row.get(col)
        if val is not None and val != "":
            out[normalize_category_key(col)] = float(val)
    return out


def map_to_price_row(price_map: Mapping[str, Any]) -> dict[str, float | None]:
    keyed = {normalize_category_key(k): v for k, v in price_map.items()}
    row: dict[str, float | None] = {}
    for col in PRICE_COLUMNS:
        val = keyed.get(normalize_category_key(col))
        row[col] = None if val is None or val == "" else float(val)
    return row


def parse_price_inputs(inputs: Mapping[str, Any], base: Mapping[str, float] | None = None) -> PriceMap:
    """Merge user-entered prices over ``base``. Blank or non-numeric entries are skipped."""
    out: PriceMap = dict(base or {})
    for cat, raw in inputs.items():
        if raw is None or str(raw).strip() == "":
            continue
        try:
            out[normalize_category_key(cat)] = float(raw)
        except (TypeError, ValueError):
            continue
    return out


def price_for(
    category: Any,
    phase: Any,
    project: str,
    price_maps: Mapping[str | None, Mapping[str, float]] | None,
) -> float | None:
    """Price per sqm for one lot, or None when no table/entry applies.

    ``price_maps`` is keyed by scope for MVLC and by ``None`` otherwise.
    """
    if not price_maps or not category:
        return None
    if is_scoped_project(project):
        if phase is None:
            return None
        table = price_maps.get(scope_for_phase(phase))
    else:
        table = price_maps.get(None)
    if not table:
        return None
    val = table.get(normalize_category_key(category))
    return None if val is None else float(val)


def price_lots(
    lots: Iterable[Mapping[str, Any]],
    project: str,
    price_maps: Mapping[str | None, Mapping[str, float]] | None,
) -> list[dict[str, Any]]:
    """Return copies of ``lots`` with ``price_per_sqm`` and ``total`` filled in.

    Used by both the store rows and the display table. Unparsable sizes leave
    ``total`` as None.
    """
    out: list[dict[str, Any]] = []
    for lot in lots:
        item = dict(lot)
        ppsqm = price_for(item.get("category"), item.get("phase"), project, price_maps)
        try:
            size = float(item.get("size"))
        except (TypeError, ValueError):
            size = None
        item["price_per_sqm"] = ppsqm
        item["total"] = ppsqm * size if ppsqm is not None and size is not None else None
        out.append(item)
    return out


def apply_prices(
    lots: Iterable[Mapping[str, Any]],
    project: str,
    price_map: Mapping[str, float],
    scope: str | None = None,
) -> list[dict[str, Any]]:
    """Apply a freshly saved price table to the cached inventory.

    For MVLC only lots of the saved phase group are touched.
    """
    keyed = {normalize_category_key(k): v for k, v in price_map.items()}
    out: list[dict[str, Any]] = []
    for lot in lots:
        item = dict(lot)
        if is_scoped_project(project) and scope_for_phase(item.get("phase")) != scope:
            out.append(item)
            continue
        val = keyed.get(normalize_category_key(item.get("category")))
        if val is not None and val != "":
            item["price_per_sqm"] = float(val)
            size = item.get("size")
            if size:
                item["total"] = float(val) * float(size)
        out.append(item)
    return out
