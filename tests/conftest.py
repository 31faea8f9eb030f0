# Shared pytest fixtures
from __future__ import annotations

import re
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from lot_inventory.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """project: MVLC
cache_directory: ./.cache
log_directory: ./logs
header_scan_limit: 20
timezone: Asia/Manila
user_id: importer
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: lots
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "lots.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_csv(temp_workdir: Path) -> Path:
    """Sales export with a title row, a blank row and the header on row 2."""
    text = (
        "Lot Inventory as of March,,,,,\n"
        ",,,,,\n"
        "Lot #,Phase,Size (sqm),Status,Category,Last Updated\n"
        "A-1,1K,120,Open,,\n"
        "A-2,2C,90,Sold,,2024-03-01\n"
        "B-7,3,\"1,250.5\",Reserved,Prime,2024-03-02\n"
    )
    f = temp_workdir / "data" / "inventory.csv"
    f.write_text(text, encoding="utf-8")
    return f


@pytest.fixture(autouse=True)
def _fresh_logging(monkeypatch):
    """Every test starts with an unconfigured logger and no DB access."""
    reset_logging()
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PGDSN", raising=False)
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    yield
    reset_logging()


_UPDATE_RE = re.compile(r"^UPDATE (\w+) SET (.+?) WHERE (.+?)(?: RETURNING (.+))?$")
_INSERT_RE = re.compile(r"^INSERT INTO (\w+) \((.+?)\) VALUES")
_SELECT_RE = re.compile(r"^SELECT (.+?) FROM (\w+)")


class FakeCursor:
    """In-memory stand-in for a psycopg2 cursor over ``lots`` / ``mvlc_price``.

    Understands exactly the statements PostgresLotStore issues.
    ``fail_when(sql, params)`` returning True makes that execute raise.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"lots": [], "mvlc_price": []}
        self.executed: list[tuple[str, Any]] = []
        self.description: list[tuple[str]] | None = None
        self.rowcount = -1
        self.fail_when: Callable[[str, Any], bool] | None = None
        self.closed = False
        self._rows: list[tuple[Any, ...]] = []

    @property
    def lots(self) -> list[dict[str, Any]]:
        return self.tables["lots"]

    @property
    def prices(self) -> list[dict[str, Any]]:
        return self.tables["mvlc_price"]

    def _set_result(self, cols: list[str], rows: list[dict[str, Any]]) -> None:
        self.description = [(c,) for c in cols]
        self._rows = [tuple(r.get(c) for c in cols) for r in rows]

    def _where(self, table: str, clause: str, params: list[Any]) -> list[dict[str, Any]]:
        if clause.startswith("lot_no = %s AND phase IS NOT DISTINCT FROM %s"):
            lot_no, phase = params
            return [r for r in self.tables[table] if r.get("lot_no") == lot_no and r.get("phase") == phase]
        if clause.startswith("phase = %s"):
            return [r for r in self.tables[table] if r.get("phase") == params[0]][:1]
        if clause.startswith("id = %s"):
            return [r for r in self.tables[table] if r.get("id") == params[0]]
        raise AssertionError(f"unexpected WHERE clause: {clause}")

    def execute(self, sql: str, params: Any = None) -> None:
        self.executed.append((sql, params))
        if self.fail_when is not None and self.fail_when(sql, params):
            raise RuntimeError("simulated database error")
        params = list(params or [])
        self._rows = []
        self.description = None

        if sql.startswith("DELETE FROM lots"):
            self.rowcount = len(self.lots)
            self.lots.clear()
            return
        m = _UPDATE_RE.match(sql)
        if m:
            table, set_clause, where, returning = m.groups()
            cols = [c.split("=")[0].strip() for c in set_clause.split(",")]
            values, where_params = params[: len(cols)], params[len(cols):]
            matched = self._where(table, where, where_params)
            for r in matched:
                r.update(zip(cols, values, strict=True))
            self.rowcount = len(matched)
            if returning:
                self._set_result([c.strip() for c in returning.split(",")], matched)
            return
        m = _INSERT_RE.match(sql)
        if m:
            table, cols = m.group(1), [c.strip() for c in m.group(2).split(",")]
            row = dict(zip(cols, params, strict=True))
            if table == "mvlc_price":
                row["id"] = len(self.prices) + 1
            self.tables[table].append(row)
            self.rowcount = 1
            return
        m = _SELECT_RE.match(sql)
        if m:
            cols, table = [c.strip() for c in m.group(1).split(",")], m.group(2)
            if table == "lots":
                limit, offset = params
                rows = sorted(self.lots, key=lambda r: str(r.get("lot_no")))[offset: offset + limit]
            else:
                rows = self._where(table, sql.split(" WHERE ", 1)[1], params)
            self._set_result(cols, rows)
            self.rowcount = len(rows)
            return
        raise AssertionError(f"unexpected SQL: {sql}")

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self._rows)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_cursor() -> FakeCursor:
    return FakeCursor()
