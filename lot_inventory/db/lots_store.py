from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import date
from typing import TYPE_CHECKING, Any, Protocol

import pandas as pd

from ..lookups import to_store_category, to_store_status
from ..models.import_result import UpsertCounts
from ..models.lot_record import LotRecord
from ..services.pricing import (
    PRICE_COLUMNS,
    SCOPES,
    expand_scope,
    is_scoped_project,
    price_lots,
    price_row_to_map,
    scope_phase_value,
)

if TYPE_CHECKING:
    from ..config.loader import AppConfig

"""Remote lot store (PostgreSQL via psycopg2).

Tables (created outside this tool):
- lots(lot_no, phase, size_sqm, price_per_sqm, total, category, status,
  last_updated, user_id)
- mvlc_price(id, phase, regular, prime, regular_corner, prime_corner,
  commercial, commercial_corner, user_id)

Upserts run one row at a time (UPDATE, then INSERT when nothing matched) on
an autocommit connection: rows written before a failure stay written, and
the failure is raised as StoreError carrying the counts reached so far.
"""

__all__ = [
    "StoreError",
    "LotStore",
    "PostgresLotStore",
    "build_store_rows",
    "resolve_dsn",
    "connect",
]

logger = logging.getLogger(__name__)

LOT_COLUMNS: tuple[str, ...] = (
    "lot_no",
    "phase",
    "size_sqm",
    "price_per_sqm",
    "total",
    "category",
    "status",
    "last_updated",
    "user_id",
)
_STORE_STATUSES = {"available", "reserved", "sold"}


class StoreError(Exception):
    """Remote store failure. ``counts`` holds the upserts completed before it."""

    def __init__(self, message: str, counts: UpsertCounts | None = None) -> None:
        super().__init__(message)
        self.counts = counts or UpsertCounts()


class LotStore(Protocol):
    def get_lots(self, page_size: int = 1000) -> list[dict[str, Any]]: ...

    def save_lots(
        self,
        project: str,
        items: Iterable[LotRecord | Mapping[str, Any]],
        progress: Callable[[int], None] | None = None,
    ) -> UpsertCounts: ...

    def update_lot_status(
        self, lot_no: str, phase: int | None, status: str, today: date | None = None
    ) -> dict[str, Any] | None: ...

    def clear_lots(self) -> int: ...

    def get_prices_by_scope(self, scope: str) -> dict[str, Any] | None: ...

    def set_prices_by_scope(self, scope: str, prices: Mapping[str, Any]) -> list[int]: ...


def _to_int(v: Any) -> int | None:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return None


def _to_float(v: Any) -> float | None:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)
    try:
        return float(str(v).strip())
    except (TypeError, ValueError):
        return None


def _to_date(v: Any) -> str | None:
    """ISO date (YYYY-MM-DD) or None when empty / unparsable."""
    if v is None or v == "":
        return None
    ts = pd.to_datetime(v, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date().isoformat()


def build_store_rows(
    project: str,
    items: Iterable[LotRecord | Mapping[str, Any]],
    price_maps: Mapping[str | None, Mapping[str, float]] | None = None,
    user_id: str | None = None,
) -> list[dict[str, Any]]:
    """Convert imported lots into ``lots`` table rows (prices derived)."""
    lots: list[dict[str, Any]] = []
    for it in items:
        data = it.import_fields() if isinstance(it, LotRecord) else dict(it)
        lots.append({
            "lot_number": data.get("lot_number") or None,
            "phase": _to_int(data.get("phase")),
            "size": _to_float(data.get("size")),
            "category": to_store_category(data.get("category")),
            "status": to_store_status(data.get("status")),
            "last_updated": _to_date(data.get("last_updated")),
        })
    return [
        {
            "lot_no": lot["lot_number"],
            "phase": lot["phase"],
            "size_sqm": lot["size"],
            "price_per_sqm": lot["price_per_sqm"],
            "total": lot["total"],
            "category": lot["category"] or None,
            "status": lot["status"],
            "last_updated": lot["last_updated"],
            "user_id": user_id,
        }
        for lot in price_lots(lots, project, price_maps)
    ]


def _store_row_to_lot(row: Mapping[str, Any]) -> dict[str, Any]:
    rec = LotRecord.from_mapping(row).to_dict()
    # DB の date 型は ISO 文字列に揃える (JSON キャッシュと同じ形)
    if isinstance(rec.get("last_updated"), date):
        rec["last_updated"] = rec["last_updated"].isoformat()
    return rec


class PostgresLotStore:
    """LotStore over a DB-API cursor (psycopg2 in production, fakes in tests)."""

    def __init__(self, cursor: Any, user_id: str | None = None) -> None:
        self.cursor = cursor
        self.user_id = user_id

    def _fetch_dicts(self) -> list[dict[str, Any]]:
        cols = [d[0] for d in (self.cursor.description or [])]
        return [dict(zip(cols, r, strict=False)) for r in self.cursor.fetchall()]

    def get_lots(self, page_size: int = 1000) -> list[dict[str, Any]]:
        """All lots ordered by lot_no, fetched page by page until a short page."""
        out: list[dict[str, Any]] = []
        offset = 0
        cols = ", ".join(c for c in LOT_COLUMNS if c != "user_id")
        while True:
            try:
                self.cursor.execute(
                    f"SELECT {cols} FROM lots ORDER BY lot_no ASC LIMIT %s OFFSET %s",
                    (page_size, offset),
                )
                batch = self._fetch_dicts()
            except Exception as e:
                raise StoreError(f"failed fetching lots: {e}") from e
            out.extend(_store_row_to_lot(r) for r in batch)
            if len(batch) < page_size:
                break
            offset += page_size
        return out

    def load_price_maps(self, project: str) -> dict[str | None, dict[str, float]] | None:
        """Price tables used to derive totals on save (MVLC only)."""
        if not is_scoped_project(project):
            return None
        maps: dict[str | None, dict[str, float]] = {}
        for scope in SCOPES:
            try:
                maps[scope] = price_row_to_map(self.get_prices_by_scope(scope))
            except StoreError as e:
                # 価格が取れなくても lot 本体の保存は続行
                logger.warning("price table unavailable scope=%s err=%s", scope, e)
        return maps

    def save_lots(
        self,
        project: str,
        items: Iterable[LotRecord | Mapping[str, Any]],
        progress: Callable[[int], None] | None = None,
    ) -> UpsertCounts:
        """Upsert lots one by one, matching on (lot_no, phase)."""
        items = list(items)
        if not items:
            return UpsertCounts()
        rows = build_store_rows(project, items, self.load_price_maps(project), self.user_id)

        inserted = updated = skipped = 0
        set_cols = [c for c in LOT_COLUMNS if c != "lot_no"]
        update_sql = (
            "UPDATE lots SET "
            + ", ".join(f"{c} = %s" for c in set_cols)
            + " WHERE lot_no = %s AND phase IS NOT DISTINCT FROM %s RETURNING lot_no"
        )
        insert_sql = (
            f"INSERT INTO lots ({', '.join(LOT_COLUMNS)}) "
            f"VALUES ({', '.join(['%s'] * len(LOT_COLUMNS))})"
        )
        for idx, r in enumerate(rows):
            if not r["lot_no"]:
                skipped += 1
                continue
            try:
                self.cursor.execute(update_sql, [r[c] for c in set_cols] + [r["lot_no"], r["phase"]])
                if self.cursor.fetchall():
                    updated += 1
                else:
                    self.cursor.execute(insert_sql, [r[c] for c in LOT_COLUMNS])
                    inserted += 1
            except Exception as e:
                raise StoreError(
                    f"upsert failed at lot_no={r['lot_no']} phase={r['phase']}: {e}",
                    UpsertCounts(inserted=inserted, updated=updated, skipped=skipped),
                ) from e
            finally:
                if progress is not None:
                    progress(idx + 1)
        return UpsertCounts(inserted=inserted, updated=updated, skipped=skipped)

    def update_lot_status(
        self, lot_no: str, phase: int | None, status: str, today: date | None = None
    ) -> dict[str, Any] | None:
        """Set one lot's status; unknown statuses fall back to ``available``."""
        new_status = to_store_status(status)
        if new_status not in _STORE_STATUSES:
            new_status = "available"
        stamp = (today or date.today()).isoformat()
        try:
            self.cursor.execute(
                "UPDATE lots SET status = %s, last_updated = %s "
                "WHERE lot_no = %s AND phase IS NOT DISTINCT FROM %s "
                "RETURNING lot_no, phase, status, last_updated",
                (new_status, stamp, lot_no, phase),
            )
            rows = self._fetch_dicts()
        except Exception as e:
            raise StoreError(f"status update failed lot_no={lot_no}: {e}") from e
        return rows[0] if rows else None

    def clear_lots(self) -> int:
        try:
            self.cursor.execute("DELETE FROM lots")
        except Exception as e:
            raise StoreError(f"failed clearing lots: {e}") from e
        return max(self.cursor.rowcount or 0, 0)

    def get_prices_by_scope(self, scope: str) -> dict[str, Any] | None:
        try:
            self.cursor.execute(
                f"SELECT id, phase, {', '.join(PRICE_COLUMNS)} FROM mvlc_price WHERE phase = %s LIMIT 1",
                (scope_phase_value(scope),),
            )
            rows = self._fetch_dicts()
        except Exception as e:
            raise StoreError(f"failed reading prices scope={scope}: {e}") from e
        return rows[0] if rows else None

    def set_prices_by_scope(self, scope: str, prices: Mapping[str, Any]) -> list[int]:
        """Update-or-insert the price row of every phase the scope covers."""
        phases = expand_scope(scope)
        values = [prices.get(c) for c in PRICE_COLUMNS]
        for phase in phases:
            try:
                self.cursor.execute("SELECT id FROM mvlc_price WHERE phase = %s LIMIT 1", (phase,))
                existing = self.cursor.fetchall()
                if existing:
                    self.cursor.execute(
                        "UPDATE mvlc_price SET "
                        + ", ".join(f"{c} = %s" for c in PRICE_COLUMNS)
                        + ", user_id = %s WHERE id = %s",
                        values + [self.user_id, existing[0][0]],
                    )
                else:
                    self.cursor.execute(
                        f"INSERT INTO mvlc_price (phase, {', '.join(PRICE_COLUMNS)}, user_id) "
                        f"VALUES ({', '.join(['%s'] * (len(PRICE_COLUMNS) + 2))})",
                        [phase] + values + [self.user_id],
                    )
            except Exception as e:
                raise StoreError(f"failed saving prices phase={phase}: {e}") from e
        return phases


def resolve_dsn(cfg: AppConfig) -> str:
    """Connection string, in priority order:

    1. ``DATABASE_URL`` / ``PGDSN`` (``.env`` は CLI 起動時に上書きロード済み)
    2. individual ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` / ``PGDATABASE``
    3. the ``database`` section of the config file
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(cfg: AppConfig) -> Iterator[PostgresLotStore]:  # pragma: no cover (thin wrapper)
    """Open an autocommit psycopg2 connection and yield a PostgresLotStore."""
    try:
        import psycopg2
    except ImportError as e:
        raise StoreError(f"psycopg2 not available: {e}") from e

    conn = psycopg2.connect(resolve_dsn(cfg))
    # 行単位で確定させる (途中失敗でも完了分は残す)
    conn.autocommit = True
    cur = conn.cursor()
    try:
        yield PostgresLotStore(cur, user_id=cfg.user_id)
    finally:
        cur.close()
        conn.close()
