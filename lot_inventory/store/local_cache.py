from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from ..lookups import normalize_status_key

"""File-backed local inventory cache.

Keeps the last merged inventory and the category price tables per project so
that imports keep working (and stay visible) when the remote store is not
reachable. One JSON document per project / price scope:

    <cache_dir>/inventory_<PROJECT>.json
    <cache_dir>/prices_<PROJECT>[_<scope>].json

Unreadable or corrupt files read as empty, matching a fresh cache.
"""

__all__ = [
    "LocalCache",
]

logger = logging.getLogger(__name__)

_SAFE_RE = re.compile(r"[^A-Za-z0-9_.-]")


def _safe(name: str) -> str:
    return _SAFE_RE.sub("_", name)


class LocalCache:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def inventory_path(self, project: str) -> Path:
        return self.directory / f"inventory_{_safe(project)}.json"

    def price_path(self, project: str, scope: str | None = None) -> Path:
        suffix = f"_{_safe(scope)}" if scope else ""
        return self.directory / f"prices_{_safe(project)}{suffix}.json"

    def _read(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("cache unreadable path=%s err=%s", path, e)
            return default
        return data if isinstance(data, type(default)) else default

    def _write(self, path: Path, data: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    # inventory
    def get_inventory(self, project: str) -> list[dict[str, Any]]:
        return self._read(self.inventory_path(project), [])

    def set_inventory(self, project: str, lots: list[dict[str, Any]]) -> None:
        self._write(self.inventory_path(project), list(lots or []))

    def clear_inventory(self, project: str) -> int:
        """Remove the cached inventory. Returns the number of lots dropped."""
        path = self.inventory_path(project)
        count = len(self.get_inventory(project))
        path.unlink(missing_ok=True)
        return count

    def update_status(self, project: str, lot_number: str, status: str, phase: int | None = None) -> int:
        """Set the status of matching cached lots. Returns the number changed.

        ``phase=None`` matches the lot number in every phase.
        """
        lots = self.get_inventory(project)
        changed = 0
        for lot in lots:
            if str(lot.get("lot_number") or "") != str(lot_number):
                continue
            if phase is not None and lot.get("phase") != phase:
                continue
            lot["status"] = normalize_status_key(status)
            changed += 1
        if changed:
            self.set_inventory(project, lots)
        return changed

    # prices
    def get_price_map(self, project: str, scope: str | None = None) -> dict[str, float]:
        return self._read(self.price_path(project, scope), {})

    def set_price_map(self, project: str, price_map: dict[str, float], scope: str | None = None) -> None:
        self._write(self.price_path(project, scope), dict(price_map or {}))
