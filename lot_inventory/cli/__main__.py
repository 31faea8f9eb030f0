from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from lot_inventory.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from lot_inventory.db.lots_store import LotStore, StoreError, connect
from lot_inventory.excel.reader import CSV_SUFFIXES, UnsupportedFileError, read_upload_rows
from lot_inventory.logging.error_log import ErrorLogBuffer
from lot_inventory.logging.init import log_summary, set_debug, setup_logging
from lot_inventory.lookups import format_category_label, format_currency, normalize_category_key
from lot_inventory.models.import_result import ImportStatus
from lot_inventory.parsing.delimiter import detect_delimiter
from lot_inventory.parsing.header import find_header_row_index, header_score, resolve_header_map
from lot_inventory.parsing.normalizer import normalize_rows
from lot_inventory.parsing.tokenizer import decode_upload
from lot_inventory.services.inventory_view import DISPLAY_COLUMNS, render_rows
from lot_inventory.services.orchestrator import (
    ProcessingError,
    clear_inventory,
    import_file,
    list_lots,
    load_prices,
    save_prices,
    update_status,
)
from lot_inventory.services.pricing import default_categories, is_scoped_project
from lot_inventory.services.summary import render_summary_line
from lot_inventory.store.local_cache import LocalCache

"""CLI entrypoint.

Sub-commands:
- import FILE     CSV / XLSX upload -> local cache (+ remote store for MVLC)
- inspect FILE    show delimiter, header row and the first parsed records
- clear           delete the project's inventory
- prices show|set category price tables
- status LOT      change one lot's status
- list            filtered / sorted inventory table

Exit codes: 0 clean, 2 degraded or remote failure, 1 fatal.
"""

EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

logger = logging.getLogger("lot_inventory.cli")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、DB 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


@contextmanager
def _store_session(cfg: AppConfig, project: str, use_remote: bool) -> Iterator[LotStore | None]:
    """Yield a connected store, or None when remote access is off or unreachable.

    Remote storage only exists for the MVLC project (``lots`` / ``mvlc_price``).
    """
    if not use_remote or not is_scoped_project(project):
        yield None
        return
    # テスト等で完全に無効化したい場合 DISABLE_DB_CONNECT=1
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> local only")
        yield None
        return
    with ExitStack() as stack:
        try:
            store: LotStore | None = stack.enter_context(connect(cfg))
        except Exception as e:  # psycopg2.OperationalError など接続系すべて
            logger.info(f"DB connection failed -> local only: {e}")
            store = None
        yield store


def _add_project(p: argparse.ArgumentParser) -> None:
    p.add_argument("--project", help="Project code (default: config 'project')")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lot_inventory", description="Lot inventory CSV/XLSX importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config file (YAML)")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a CSV / XLSX inventory file")
    imp.add_argument("file", type=Path)
    _add_project(imp)
    imp.add_argument("--no-remote", action="store_true", help="Skip the remote store")

    ins = sub.add_parser("inspect", help="Show how a file would be parsed")
    ins.add_argument("file", type=Path)
    ins.add_argument("--limit", type=int, default=5, help="Records to print")

    clr = sub.add_parser("clear", help="Delete the project's inventory")
    _add_project(clr)
    clr.add_argument("--no-remote", action="store_true")

    prc = sub.add_parser("prices", help="Show or set category prices")
    prc_sub = prc.add_subparsers(dest="action", required=True)
    prc_show = prc_sub.add_parser("show", help="Print the price table")
    prc_set = prc_sub.add_parser("set", help="Save CATEGORY=PRICE values")
    prc_set.add_argument("values", nargs="+", metavar="CATEGORY=PRICE")
    for q in (prc_show, prc_set):
        q.add_argument("--scope", help="MVLC phase group: phase1, phase2, phase3, phase13")
        _add_project(q)
        q.add_argument("--no-remote", action="store_true")

    st = sub.add_parser("status", help="Change one lot's status")
    st.add_argument("lot")
    st.add_argument("--phase", type=int)
    st.add_argument("--status", required=True)
    _add_project(st)
    st.add_argument("--no-remote", action="store_true")

    ls = sub.add_parser("list", help="List the inventory")
    ls.add_argument("--category", default="all")
    ls.add_argument("--status", default="all")
    ls.add_argument("--phase", default="all", help="phase-N slug (MVLC) or 'all'")
    _add_project(ls)
    ls.add_argument("--no-remote", action="store_true")
    return p.parse_args(argv)


def _cmd_import(args: argparse.Namespace, cfg: AppConfig, project: str, cache: LocalCache) -> int:
    path: Path = args.file
    if not path.exists():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    error_log = ErrorLogBuffer(cfg.log_directory)
    try:
        with _store_session(cfg, project, not args.no_remote) as store:
            result = import_file(
                path,
                project,
                cache,
                store,
                max_scan=cfg.header_scan_limit,
                error_log=error_log,
            )
    except (UnsupportedFileError, ProcessingError) as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL
    finally:
        written = error_log.flush()
        if written is not None:
            logger.info(f"error log written: {written}")

    # log_summary が "SUMMARY " を付与するため先頭を除去
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_SUCCESS if result.status is ImportStatus.CLEAN else EXIT_PARTIAL_FAILURE


def _cmd_inspect(args: argparse.Namespace, cfg: AppConfig) -> int:
    path: Path = args.file
    if not path.exists():
        print(f"inspect: file not found: {path}")
        return EXIT_FATAL
    try:
        rows = read_upload_rows(path)
    except UnsupportedFileError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name} rows={len(rows)}")
    if not rows:
        return EXIT_SUCCESS
    if path.suffix.lower() in CSV_SUFFIXES:
        print(f"  delimiter={detect_delimiter(decode_upload(path.read_bytes()))!r}")
    idx = find_header_row_index(rows, cfg.header_scan_limit)
    header_map = resolve_header_map(rows[idx])
    print(f"  header_row={idx} score={header_score(rows[idx])} columns={header_map}")
    normalized = normalize_rows(rows, idx, header_map)
    print(f"  records={len(normalized.records)} skipped={normalized.skipped}")
    for rec in normalized.records[: args.limit]:
        print(f"    {rec.import_fields()}")
    return EXIT_SUCCESS


def _cmd_clear(args: argparse.Namespace, cfg: AppConfig, project: str, cache: LocalCache) -> int:
    with _store_session(cfg, project, not args.no_remote) as store:
        res = clear_inventory(project, cache, store)
    logger.info(f"Cleared {res.local_deleted} cached lots for {project}")
    return EXIT_PARTIAL_FAILURE if res.remote_error else EXIT_SUCCESS


def _parse_price_args(values: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for v in values:
        name, sep, price = v.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"expected CATEGORY=PRICE, got {v!r}")
        out[normalize_category_key(name)] = price.strip()
    return out


def _print_prices(project: str, scope: str | None, prices: dict[str, float]) -> None:
    print(f"PRICES project={project} scope={scope or '-'}")
    names = [normalize_category_key(c) for c in default_categories(project, scope)]
    names += sorted(k for k in prices if k not in names)
    for name in names:
        val = prices.get(name)
        print(f"  {format_category_label(name)}: {format_currency(val) if val is not None else '-'}")


def _cmd_prices(args: argparse.Namespace, cfg: AppConfig, project: str, cache: LocalCache) -> int:
    with _store_session(cfg, project, not args.no_remote) as store:
        if args.action == "show":
            prices = load_prices(project, args.scope, cache, store)
            scope = (args.scope or "phase2") if is_scoped_project(project) else None
            _print_prices(project, scope, prices)
            return EXIT_SUCCESS
        try:
            inputs = _parse_price_args(args.values)
        except ValueError as e:
            logger.error(f"prices: {e}")
            return EXIT_FATAL
        update = save_prices(project, args.scope, inputs, cache, store)
    logger.info(f"Saved {project} prices scope={update.scope or '-'} synced={update.synced}")
    _print_prices(project, update.scope, update.prices)
    return EXIT_PARTIAL_FAILURE if update.error else EXIT_SUCCESS


def _cmd_status(args: argparse.Namespace, cfg: AppConfig, project: str, cache: LocalCache) -> int:
    with _store_session(cfg, project, not args.no_remote) as store:
        try:
            # 日付は config の timezone 基準
            today = datetime.now(ZoneInfo(cfg.timezone)).date()
            found = update_status(project, args.lot, args.phase, args.status, cache, store, today=today)
        except StoreError as e:
            logger.error(f"status: {e}")
            return EXIT_FATAL
    if not found:
        logger.warning(f"lot not found: {args.lot} phase={args.phase}")
        return EXIT_PARTIAL_FAILURE
    logger.info(f"Status of lot {args.lot} set to {args.status}")
    return EXIT_SUCCESS


def _cmd_list(args: argparse.Namespace, cfg: AppConfig, project: str, cache: LocalCache) -> int:
    with _store_session(cfg, project, not args.no_remote) as store:
        try:
            lots, price_maps = list_lots(
                project, cache, store, category=args.category, status=args.status, phase=args.phase
            )
        except StoreError as e:
            logger.error(f"list: {e}")
            return EXIT_FATAL
    print("\t".join(DISPLAY_COLUMNS))
    for row in render_rows(lots, project, price_maps):
        print("\t".join(row[c] for c in DISPLAY_COLUMNS))
    logger.info(f"{len(lots)} lots")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    log = setup_logging()

    # NOTE: 空リスト [] が与えられた場合に sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        log.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(True)
        log.debug("debug mode enabled")

    if args.command == "inspect":
        return _cmd_inspect(args, cfg)

    project = args.project or cfg.project
    cache = LocalCache(cfg.cache_directory)
    handlers = {
        "import": _cmd_import,
        "clear": _cmd_clear,
        "prices": _cmd_prices,
        "status": _cmd_status,
        "list": _cmd_list,
    }
    return handlers[args.command](args, cfg, project, cache)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
