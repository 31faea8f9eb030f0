from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from ..models.lot_record import LotRecord

"""Inventory reconciliation (client-side upsert).

Imported records are merged into the current project inventory keyed by
``lowercase(trim(lot_number)) + "||" + phase``. A matching record is shallow
merged (imported fields replace the existing ones, fields the import does not
carry such as ``price_per_sqm`` are kept); anything else is appended.

Running the same batch twice yields the same inventory, with every record
counted as updated the second time.
"""

__all__ = [
    "KEY_SEPARATOR",
    "lot_key",
    "Inventory",
    "ReconcileResult",
    "reconcile",
]

KEY_SEPARATOR = "||"

LotLike = LotRecord | Mapping[str, Any]


def _as_dict(record: LotLike) -> dict[str, Any]:
    if isinstance(record, LotRecord):
        return record.import_fields()
    return dict(record)


def lot_key(record: LotLike) -> str:
    """Composite inventory key of a record (dict or LotRecord)."""
    data = record.import_fields() if isinstance(record, LotRecord) else record
    lot = str(data.get("lot_number") or "").strip().lower()
    phase = data.get("phase")
    return f"{lot}{KEY_SEPARATOR}{'' if phase is None else phase}"


class Inventory:
    """Keyed lot collection: at most one record per (lot number, phase).

    Records are kept as plain dicts in insertion order so that cached
    inventories round-trip through JSON unchanged.
    """

    def __init__(self) -> None:
        self._by_key: dict[str, dict[str, Any]] = {}

    @classmethod
    def from_records(cls, records: Iterable[LotLike]) -> Inventory:
        # 既存キャッシュに重複キーがあれば後勝ちで1件に畳む
        inv = cls()
        for rec in records:
            inv.upsert(rec)
        return inv

    def upsert(self, record: LotLike) -> bool:
        """Merge ``record`` in. Returns True when an existing record was updated."""
        key = lot_key(record)
        incoming = _as_dict(record)
        current = self._by_key.get(key)
        if current is None:
            self._by_key[key] = incoming
            return False
        self._by_key[key] = {**current, **incoming}
        return True

    def get(self, key: str) -> dict[str, Any] | None:
        return self._by_key.get(key)

    def records(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._by_key.values()]

    def keys(self) -> list[str]:
        return list(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.records())


@dataclass(frozen=True)
class ReconcileResult:
    updated: int
    inserted: int
    merged: Inventory


def reconcile(existing: Inventory | Iterable[LotLike], candidates: Iterable[LotLike]) -> ReconcileResult:
    """Merge ``candidates`` into ``existing`` without mutating it.

    A candidate whose key repeats an earlier candidate of the same batch
    counts as an update of that earlier record.
    """
    source = existing.records() if isinstance(existing, Inventory) else existing
    merged = Inventory.from_records(source)
    updated = 0
    inserted = 0
    for cand in candidates:
        if merged.upsert(cand):
            updated += 1
        else:
            inserted += 1
    return ReconcileResult(updated=updated, inserted=inserted, merged=merged)
