from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

"""LotRecord model: one saleable lot after row normalization.

A LotRecord is created per import batch and merged into the project
inventory (see services.reconciler). ``price_per_sqm`` and ``total`` are
derived later from the category price tables and are never filled by the
importer itself.
"""

__all__ = [
    "IMPORT_FIELDS",
    "LotRecord",
]

# 取込で上書きされる列 (派生列 price_per_sqm / total は含めない)
IMPORT_FIELDS: tuple[str, ...] = (
    "lot_number",
    "phase",
    "size",
    "category",
    "status",
    "last_updated",
)

# DB (lots テーブル) 列名 -> モデル属性名
_STORE_ALIASES: dict[str, str] = {
    "lot_no": "lot_number",
    "size_sqm": "size",
}


@dataclass(frozen=True)
class LotRecord:
    """Canonical lot record.

    Attributes:
        lot_number: Lot identifier as written in the upload (non-empty)
        phase: First run of digits of the phase cell, or None
        size: Lot area in square metres (0 when unparsable)
        category: Canonical category label (Regular, Prime Corner, ...)
        status: Raw status text (open / available / reserved / sold / ...)
        last_updated: Raw reservation / update date text, or None
    """
    lot_number: str
    phase: int | None
    size: float
    category: str
    status: str
    last_updated: str | None = None
    price_per_sqm: float | None = None
    total: float | None = None

    def import_fields(self) -> dict[str, Any]:
        """Fields written by an import (the shallow-merge payload)."""
        return {name: getattr(self, name) for name in IMPORT_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LotRecord:
        """Build a record from a cached inventory dict or a ``lots`` table row."""
        values: dict[str, Any] = {}
        for key, val in data.items():
            name = _STORE_ALIASES.get(key, key)
            if name in cls.__dataclass_fields__:
                values[name] = val
        return cls(
            lot_number=str(values.get("lot_number") or ""),
            phase=values.get("phase"),
            size=float(values.get("size") or 0),
            category=values.get("category") or "",
            status=values.get("status") or "",
            last_updated=values.get("last_updated"),
            price_per_sqm=values.get("price_per_sqm"),
            total=values.get("total"),
        )
