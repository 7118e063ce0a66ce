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

from member_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from member_import.db.member_store import PostgresMemberStore
from member_import.excel.reader import SourceReadError, read_legacy_grid
from member_import.logging.init import log_summary, setup_logging
from member_import.models.config_models import ImportConfig
from member_import.services.orchestrator import ProcessingError, process_import
from member_import.services.summary import render_skip_reasons, render_summary_line

"""CLI entrypoint.

    python -m member_import.cli [--config PATH] [--file PATH] [--sheet NAME]
                                [--dry-run] [--inspect-data] [--debug]

Exit codes: 0 when the run reaches completion (failed batches included, they
are in the report), 1 on a fatal setup error before any processing.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1


class CredentialsError(Exception):
    """No database connection information could be resolved."""


def _resolve_dsn(cfg: ImportConfig) -> str:
    """Connection string, first hit wins:

        1. DATABASE_URL / PGDSN (``.env`` loaded with override beforehand)
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. ``database`` section of the YAML config
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST") or db_cfg.host
    if not host:
        raise CredentialsError(
            "missing database credentials: set DATABASE_URL (or PGHOST/PGUSER/...) in .env"
        )
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 cursor for the run.

    autocommit=True: the member store issues BEGIN/COMMIT per batch itself.
    """
    conn = psycopg2.connect(_resolve_dsn(cfg))
    cur = None
    try:
        conn.autocommit = True
        cur = conn.cursor()
        cur.execute("SET TIME ZONE %s", (cfg.timezone,))
        yield cur
    finally:
        if cur is not None:
            cur.close()
        conn.close()


@contextmanager
def _open_store(cfg: ImportConfig) -> Iterator[PostgresMemberStore]:
    with _db_connection(cfg) as cur:
        yield PostgresMemberStore(cur, cfg.tables)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over variables already in the process."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Legacy membership workbook importer")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--file", help="Source workbook (overrides source_file)")
    p.add_argument("--sheet", help="Sheet name (overrides sheet; default first sheet)")
    p.add_argument("--dry-run", action="store_true", help="Normalize and report only; no database access")
    p.add_argument("--inspect-data", action="store_true", help="Print header, first row and row count then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig) -> int:
    try:
        grid = read_legacy_grid(Path(cfg.source_file), cfg.sheet)
    except SourceReadError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    safe = lambda row: [v.isoformat() if hasattr(v, "isoformat") else v for v in row]  # noqa: E731
    print(f"FILE: {grid.source} SHEET: {grid.sheet_name}")
    print(f"  header={safe(grid.header)}")
    if grid.data_rows:
        print(f"  first_row={safe(grid.data_rows[0])}")
    print(f"  total_rows={len(grid.rows)}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    # NOTE: [] を渡された場合に sys.argv[1:] が混入しないよう None のときだけ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    overrides: dict[str, Any] = {}
    if args.file:
        overrides["source_file"] = args.file
    if args.sheet:
        overrides["sheet"] = args.sheet
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)

    if args.inspect_data:
        return _inspect_data(cfg)

    logger.info(f"Reading: {cfg.source_file}")
    try:
        if args.dry_run:
            outcome = process_import(cfg, None, dry_run=True)
        else:
            with _open_store(cfg) as store:
                outcome = process_import(cfg, store)
    except CredentialsError as e:
        logger.error(f"credentials: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    log_summary(render_summary_line(outcome)[len("SUMMARY "):])
    reasons = render_skip_reasons(outcome)
    if reasons:
        logger.info("Skipped reasons:")
        for line in reasons:
            logger.info(f"  - {line}")
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
