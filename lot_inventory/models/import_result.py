from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .lot_record import LotRecord

"""Import result models.

An import never silently degrades: every fallback taken along the way
(best-effort header row, missing columns, skipped rows, remote store failure)
is recorded as an ImportWarning and reflected in ImportStatus, so callers can
tell a clean import from a degraded one.
"""

__all__ = [
    "ImportStatus",
    "ImportWarning",
    "UpsertCounts",
    "ImportResult",
]


class ImportStatus(Enum):
    """Outcome of one upload.

    - CLEAN: header found, every canonical column resolved, remote ok (or not used)
    - DEGRADED: local merge done but some fallback was applied (see warnings)
    - REMOTE_FAILED: local merge done, remote upsert failed part-way
    """
    CLEAN = "clean"
    DEGRADED = "degraded"
    REMOTE_FAILED = "remote_failed"


@dataclass(frozen=True)
class ImportWarning:
    code: str  # UPPER_SNAKE (HEADER_NOT_FOUND / COLUMN_MISSING / ROWS_SKIPPED / DUPLICATE_KEYS)
    message: str


@dataclass(frozen=True)
class UpsertCounts:
    """Per-row upsert counters returned by a lot store."""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0  # lot_no 無し行


@dataclass(frozen=True)
class ImportResult:
    """Aggregated result of importing one file into a project inventory."""
    project: str
    status: ImportStatus
    inserted: int  # local merge: 新規
    updated: int  # local merge: 既存更新
    header_row: int  # 採用したヘッダ行 index
    records: list[LotRecord] = field(default_factory=list)  # 正規化済 (今回の取込分)
    merged: list[dict[str, Any]] = field(default_factory=list)  # マージ後の在庫
    skipped_rows: int = 0  # 空行 + lot 番号なし行
    warnings: list[ImportWarning] = field(default_factory=list)
    remote: UpsertCounts | None = None  # None = remote 未使用
    remote_error: str | None = None

    @property
    def is_clean(self) -> bool:
        return self.status is ImportStatus.CLEAN
