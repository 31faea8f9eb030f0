from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Any

from ..db.lots_store import LotStore, StoreError
from ..excel.reader import UnsupportedFileError, read_upload_rows
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.import_result import ImportResult, ImportStatus, ImportWarning
from ..parsing.header import (
    DEFAULT_MAX_SCAN,
    find_header_row_index,
    header_score,
    resolve_header_map,
)
from ..parsing.normalizer import normalize_rows
from ..store.local_cache import LocalCache
from .inventory_view import filter_lots, sort_lots
from .pricing import (
    PriceMap,
    apply_prices,
    is_scoped_project,
    map_to_price_row,
    parse_price_inputs,
    price_row_to_map,
    scope_for_phase,
)
from .progress import UpsertProgress
from .reconciler import lot_key, reconcile

"""Import orchestration.

Flow for one upload:
1. read the file into a cell matrix (CSV tokenizer or pandas for workbooks)
2. locate the header row, resolve the column map, normalize data rows
3. reconcile against the cached project inventory and write the cache
4. when a remote store is available, upsert the imported rows one by one

Step 4 is not transactional with step 3: a remote failure keeps the local
merge and is reported as ImportStatus.REMOTE_FAILED.

The remaining helpers (clear / status / prices / listing) follow the same
split: local cache first, remote store when connected.
"""

__all__ = [
    "ProcessingError",
    "EmptyImportError",
    "REQUIRED_COLUMNS",
    "import_rows",
    "import_file",
    "ClearResult",
    "clear_inventory",
    "update_status",
    "PriceUpdate",
    "load_prices",
    "save_prices",
    "list_lots",
]

logger = logging.getLogger(__name__)

# 欠落時に DEGRADED 扱いとする列 (category / rsvDate は任意)
REQUIRED_COLUMNS: tuple[str, ...] = ("lot", "phase", "size", "status")
_HEADER_WARNINGS = frozenset({"HEADER_NOT_FOUND", "COLUMN_MISSING"})


class ProcessingError(Exception):
    """Base exception for import failures (no partial result is produced)."""


class EmptyImportError(ProcessingError):
    """The upload parsed to zero rows."""


def import_rows(
    rows: Sequence[Sequence[Any]],
    project: str,
    existing: Sequence[Mapping[str, Any]] = (),
    *,
    max_scan: int = DEFAULT_MAX_SCAN,
) -> ImportResult:
    """Parse an already tokenized matrix and merge it into ``existing``.

    Pure: nothing is persisted. Raises EmptyImportError for an empty matrix.
    """
    if not rows:
        raise EmptyImportError("empty file: no rows parsed")

    warnings: list[ImportWarning] = []
    header_index = find_header_row_index(rows, max_scan)
    header_row = rows[header_index]
    header_map = resolve_header_map(header_row)

    if header_score(header_row) == 0:
        warnings.append(ImportWarning(
            "HEADER_NOT_FOUND",
            f"no known column names in the first {min(len(rows), max_scan)} rows; using row {header_index}",
        ))
    missing = [f for f in REQUIRED_COLUMNS if header_map.get(f) is None]
    if missing:
        warnings.append(ImportWarning("COLUMN_MISSING", f"columns not found: {', '.join(missing)}"))

    normalized = normalize_rows(rows, header_index, header_map)
    if normalized.missing_lot_rows:
        warnings.append(ImportWarning(
            "ROWS_SKIPPED",
            f"{len(normalized.missing_lot_rows)} row(s) without lot number skipped",
        ))
    dup = [k for k, n in Counter(lot_key(r) for r in normalized.records).items() if n > 1]
    if dup:
        warnings.append(ImportWarning(
            "DUPLICATE_KEYS",
            f"{len(dup)} lot/phase key(s) repeated in the upload; last occurrence wins",
        ))

    merged = reconcile(existing, normalized.records)
    logger.debug(
        "project=%s header_row=%d header_map=%s records=%d blank=%d no_lot=%d",
        project,
        header_index,
        header_map,
        len(normalized.records),
        len(normalized.blank_rows),
        len(normalized.missing_lot_rows),
    )
    return ImportResult(
        project=project,
        status=ImportStatus.DEGRADED if warnings else ImportStatus.CLEAN,
        inserted=merged.inserted,
        updated=merged.updated,
        header_row=header_index,
        records=normalized.records,
        merged=merged.merged.records(),
        skipped_rows=normalized.skipped,
        warnings=warnings,
    )


def import_file(
    path: Path,
    project: str,
    cache: LocalCache,
    store: LotStore | None = None,
    *,
    max_scan: int = DEFAULT_MAX_SCAN,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Import one CSV / XLSX upload into ``project``.

    Raises:
        UnsupportedFileError: not a CSV or Excel file
        EmptyImportError: the file has no rows
    """
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    try:
        rows = read_upload_rows(path)
    except UnsupportedFileError as e:
        error_log.append(ErrorRecord.create(path.name, -1, "UNSUPPORTED_FILE", str(e)))
        raise
    try:
        result = import_rows(rows, project, cache.get_inventory(project), max_scan=max_scan)
    except EmptyImportError as e:
        error_log.append(ErrorRecord.create(path.name, -1, "EMPTY_FILE", str(e)))
        raise

    cache.set_inventory(project, result.merged)
    logger.info(
        "Imported %d rows for %s - updated %d, added %d",
        len(result.records),
        project,
        result.updated,
        result.inserted,
    )
    for w in result.warnings:
        logger.warning("%s: %s", w.code, w.message)
        row = result.header_row if w.code in _HEADER_WARNINGS else -1
        error_log.append(ErrorRecord.create(path.name, row, w.code, w.message))

    if store is None:
        return result

    with UpsertProgress(len(result.records)) as progress:
        try:
            counts = store.save_lots(project, result.records, progress=progress.update_to)
        except StoreError as e:
            # ローカルのマージ結果は保持したまま、remote 失敗のみ報告
            logger.error("remote upsert failed (local inventory kept): %s", e)
            error_log.append(ErrorRecord.create(path.name, -1, "REMOTE_UPSERT_ERROR", str(e)))
            return replace(
                result,
                status=ImportStatus.REMOTE_FAILED,
                remote=e.counts,
                remote_error=str(e),
            )
        progress.set_postfix(inserted=counts.inserted, updated=counts.updated)
    logger.info("Database upsert complete - updated %d, inserted %d", counts.updated, counts.inserted)
    return replace(result, remote=counts)


@dataclass(frozen=True)
class ClearResult:
    local_deleted: int
    remote_deleted: int | None = None  # None = remote 未使用
    remote_error: str | None = None


def clear_inventory(project: str, cache: LocalCache, store: LotStore | None = None) -> ClearResult:
    """Delete every lot of the project (remote first, then the local cache).

    The local cache is cleared even when the remote delete fails.
    """
    remote_deleted: int | None = None
    remote_error: str | None = None
    if store is not None:
        try:
            remote_deleted = store.clear_lots()
            logger.info("Deleted %d lots from %s", remote_deleted, project)
        except StoreError as e:
            remote_error = str(e)
            logger.error("failed to delete lots from server: %s", e)
    local_deleted = cache.clear_inventory(project)
    return ClearResult(local_deleted=local_deleted, remote_deleted=remote_deleted, remote_error=remote_error)


def update_status(
    project: str,
    lot_number: str,
    phase: int | None,
    status: str,
    cache: LocalCache,
    store: LotStore | None = None,
    today: date | None = None,
) -> bool:
    """Change one lot's status remotely when connected, otherwise in the cache.

    Returns False when no lot matched. StoreError propagates (reported to the
    user, who may retry).
    """
    if store is not None:
        row = store.update_lot_status(lot_number, phase, status, today=today)
        logger.debug("remote status update lot=%s row=%s", lot_number, row)
        return row is not None
    changed = cache.update_status(project, lot_number, status, phase)
    logger.info("Status updated locally lot=%s changed=%d", lot_number, changed)
    return changed > 0


@dataclass(frozen=True)
class PriceUpdate:
    scope: str | None
    prices: PriceMap
    synced: bool  # remote に保存できたか
    error: str | None = None


def _scope_or_default(project: str, scope: str | None) -> str | None:
    if not is_scoped_project(project):
        return None
    return scope or "phase2"


def load_prices(
    project: str,
    scope: str | None,
    cache: LocalCache,
    store: LotStore | None = None,
) -> PriceMap:
    """Cached price table for the scope, overlaid with the server's row (MVLC)."""
    scope = _scope_or_default(project, scope)
    prices: PriceMap = dict(cache.get_price_map(project, scope))
    if store is not None and scope is not None:
        try:
            prices.update(price_row_to_map(store.get_prices_by_scope(scope)))
        except StoreError as e:
            logger.warning("server prices unavailable scope=%s: %s", scope, e)
    return prices


def save_prices(
    project: str,
    scope: str | None,
    inputs: Mapping[str, Any],
    cache: LocalCache,
    store: LotStore | None = None,
) -> PriceUpdate:
    """Save category prices locally, apply them to the cached inventory and
    sync them to the server for MVLC."""
    scope = _scope_or_default(project, scope)
    prices = parse_price_inputs(inputs, cache.get_price_map(project, scope))
    cache.set_price_map(project, prices, scope)
    cache.set_inventory(project, apply_prices(cache.get_inventory(project), project, prices, scope))

    if store is None or scope is None:
        return PriceUpdate(scope=scope, prices=prices, synced=False)
    try:
        store.set_prices_by_scope(scope, map_to_price_row(prices))
    except StoreError as e:
        logger.warning("Failed syncing %s prices to server: %s", project, e)
        return PriceUpdate(scope=scope, prices=prices, synced=False, error=str(e))
    return PriceUpdate(scope=scope, prices=prices, synced=True)


def list_lots(
    project: str,
    cache: LocalCache,
    store: LotStore | None = None,
    *,
    category: str = "all",
    status: str = "all",
    phase: str = "all",
) -> tuple[list[dict[str, Any]], dict[str | None, PriceMap] | None]:
    """Lots to display plus the price tables needed to price them.

    MVLC with a connected store reads the server; everything else the cache.
    """
    price_maps: dict[str | None, PriceMap] | None = None
    if store is not None and is_scoped_project(project):
        lots = store.get_lots()
        price_maps = {}
        for scope in sorted({scope_for_phase(l.get("phase")) for l in lots if l.get("phase") is not None}):
            try:
                row = store.get_prices_by_scope(scope)
            except StoreError as e:
                logger.warning("server prices unavailable scope=%s: %s", scope, e)
                continue
            if row:
                price_maps[scope] = price_row_to_map(row)
    else:
        lots = cache.get_inventory(project)
    shown = filter_lots(lots, project, category=category, status=status, phase=phase)
    if is_scoped_project(project) and phase.lower() == "all":
        shown = sort_lots(shown)
    return shown, price_maps
