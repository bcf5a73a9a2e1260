from __future__ import annotations

import argparse
import dataclasses
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.contexts import resolve_context
from ..config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config, load_config_or_default
from ..db.batch_insert import PostgresRowSink
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import enable_debug, log_summary, setup_logging
from ..models.field_registry import RegistryError
from ..models.import_context import DuplicatePolicy, ImportContext
from ..models.import_result import ImportSummary
from ..services.mapping_store import JsonFileMappingStore
from ..services.progress import ProgressTracker
from ..services.session import ImportSession
from ..services.summary import render_summary_line

"""CLI entrypoint.

    ledger-import FILE... [--context NAME] [--config PATH] [--sheet NAME]
                  [--year N] [--periods H ...] [--flat] [--skip-duplicates]
                  [--dry-run] [--inspect] [--debug]

Every file runs through one ImportSession with the automatic proposal
(detected header row, inferred types, auto-mapping, matrix detection) and the
default selection, then is committed in its own transaction.

Exit codes: 0 every file imported, 2 at least one file failed, 1 fatal
(configuration or database connection).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: AppConfig) -> str:
    """DSN resolution order.

    1. DATABASE_URL / PGDSN (``.env`` is loaded with override before this)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
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
def _db_connection(cfg: AppConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection with explicit transactions (committed per file by the caller)."""
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env (its values win over the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="ledger-import", description="Spreadsheet -> ledger records importer")
    p.add_argument("files", nargs="+", type=Path, help="Spreadsheet files (.xlsx/.xls/.csv/...)")
    p.add_argument("--context", default="generic", help="Import context (generic, purchase, income_statement, cash_count, ...)")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--sheet", default=None, help="Worksheet name (default: first sheet)")
    p.add_argument("--year", type=int, default=None, help="Year for month-only dates and matrix periods")
    p.add_argument("--periods", nargs="+", default=None, help="Matrix period headers to import (default: all month columns)")
    p.add_argument("--flat", action="store_true", help="Never expand a detected matrix layout")
    p.add_argument("--skip-duplicates", action="store_true", help="Leave rows already imported out of the commit")
    p.add_argument("--dry-run", action="store_true", help="Normalize and report without writing to the database")
    p.add_argument("--inspect", action="store_true", help="Print detected header, types and mapping then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _load_app_config(path: Path | None) -> AppConfig:
    if path is not None:
        return load_config(path)
    return load_config_or_default(DEFAULT_CONFIG_PATH)


def _new_session(
    cfg: AppConfig,
    context: ImportContext,
    args: argparse.Namespace,
    store: JsonFileMappingStore,
    error_log: ErrorLogBuffer,
) -> ImportSession:
    return ImportSession(
        context,
        locale=cfg.locale,
        mapping_store=store,
        search_depth=cfg.search_depth,
        default_year=args.year if args.year is not None else cfg.default_year,
        error_log=error_log,
        table_prefix=cfg.table_prefix,
    )


def _prepare(session: ImportSession, path: Path, args: argparse.Namespace, cfg: AppConfig) -> bool:
    if not session.load_file(path, sheet_name=args.sheet, keep_na_strings=cfg.keep_na_strings):
        return False
    if args.flat:
        session.configure_matrix(False)
    elif session.matrix:
        session.configure_matrix(True, year=args.year, period_headers=args.periods)
    return True


def _inspect(session: ImportSession) -> None:
    print(f"FILE: {session.file_name}")
    print(f"  header_row={session.header_row_index + 1}")
    for cfg in session.column_configs:
        print(f"  column {cfg.header!r}: {cfg.type.value}")
    print(f"  mapping={session.mapping}")
    if session.matrix:
        s = session.matrix_settings
        print(
            f"  matrix: code={s.account_code_header!r} name={s.account_name_header!r} "
            f"year={s.year} periods={s.period_headers}"
        )
    else:
        print("  matrix: no")


def _import_file(
    session: ImportSession,
    path: Path,
    args: argparse.Namespace,
    cfg: AppConfig,
    conn: Any,
    logger: Any,
) -> ImportSummary:
    if not _prepare(session, path, args, cfg):
        return session.summary()
    session.normalize()
    for row in session.parsed_rows:
        for message in row.validation_errors:
            logger.warning(f"{path.name} row {row.sheet_row_number}: {message}")
    if conn is None:
        return session.summary()

    id_column = session.context.id_column
    conflict_columns = [id_column] if id_column else None
    with conn.cursor() as cur:
        summary = session.commit(PostgresRowSink(cur, conflict_columns=conflict_columns))
    if summary.error is None:
        conn.commit()
    else:
        conn.rollback()
    return summary


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで main([...]) を渡すため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        enable_debug()

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = _load_app_config(args.config)
        context = resolve_context(args.context, cfg.contexts)
    except (ConfigError, RegistryError) as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except KeyError as e:
        logger.error(f"config: {e.args[0]}")
        return EXIT_FATAL
    if args.skip_duplicates:
        context = dataclasses.replace(context, duplicate_policy=DuplicatePolicy.SKIP)

    store = JsonFileMappingStore(cfg.mapping_store)
    error_log = ErrorLogBuffer()

    if args.inspect:
        failed = 0
        for path in args.files:
            session = _new_session(cfg, context, args, store, error_log)
            if not _prepare(session, path, args, cfg):
                print(f"FILE: {path.name}\n  read_error: {session.error}")
                failed += 1
                continue
            _inspect(session)
        return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL

    dry_run = args.dry_run or os.getenv("DISABLE_DB_CONNECT") == "1"
    logger.info(f"context={context.name} files={len(args.files)} mode={'dry-run' if dry_run else 'live'}")

    summaries: list[ImportSummary] = []

    def run(conn: Any) -> None:
        with ProgressTracker(len(args.files)) as progress:
            for path in args.files:
                progress.start_file(path)
                session = _new_session(cfg, context, args, store, error_log)
                summary = _import_file(session, path, args, cfg, conn, logger)
                summaries.append(summary)
                log_summary(render_summary_line(summary))
                progress.finish_file(success=summary.error is None, rows=summary.committed_rows)

    if dry_run:
        run(None)
    else:
        try:
            with _db_connection(cfg) as conn:
                run(conn)
        except psycopg2.Error as e:
            logger.error(f"database: {e}")
            error_log.flush()
            return EXIT_FATAL

    written = error_log.flush()
    if written is not None:
        logger.info(f"error log: {written}")

    failed = sum(1 for s in summaries if s.error is not None)
    if failed:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
