from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from pathlib import Path

from ..db.batch_insert import BatchInsertError, BatchMetrics
from ..db.member_store import IdentityFetchError, MemberStore
from ..excel.reader import LegacyGrid, SourceReadError, read_legacy_grid
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.config_models import ImportConfig
from ..models.import_outcome import BatchResult, BatchStatsAccumulator, ImportOutcome
from ..models.member_record import MemberRecord
from ..models.row_result import (
    REASON_ALREADY_IMPORTED,
    REASON_DUPLICATE_IN_FILE,
    REASON_HAS_ACCOUNT,
    RowAccepted,
    RowRejected,
)
from .progress import ProgressTracker
from .row_transformer import transform_row

logger = logging.getLogger(__name__)

"""Import orchestration.

A single linear pass:

1. Load      read the grid, row 0 is the header
2. Transform every data row -> accepted records / rejected rows
3. Dedup     drop emails already imported or already owning an account
4. Persist   batches of ``batch_size``, one transaction each, no retry
5. Report    the returned ImportOutcome is rendered by the CLI

Load and dedup failures are fatal (ProcessingError) and happen before anything
is written. A failed batch is recorded and the next batch still runs; rerunning
the import later picks up exactly the records that did not make it, because the
imported ones are then part of the "already imported" set.
"""

__all__ = [
    "ProcessingError",
    "load_grid",
    "transform_rows",
    "deduplicate",
    "persist_batches",
    "process_import",
]


class ProcessingError(Exception):
    """Fatal error: the run stops before any persistence."""


def load_grid(config: ImportConfig) -> LegacyGrid:
    try:
        grid = read_legacy_grid(Path(config.source_file), config.sheet)
    except SourceReadError as e:
        raise ProcessingError(str(e)) from e
    logger.info(
        f"Read {grid.source} sheet={grid.sheet_name} rows={len(grid.data_rows)} (excluding header)"
    )
    return grid


def transform_rows(grid: LegacyGrid, config: ImportConfig, outcome: ImportOutcome) -> None:
    outcome.total_rows = len(grid.data_rows)
    # grid index 0 is the header; data rows start at index 1
    for idx, row in enumerate(grid.data_rows, start=1):
        result = transform_row(row, idx, config.mapping)
        if isinstance(result, RowAccepted):
            outcome.accepted.append(result.record)
        else:
            outcome.skipped.append(result)
    logger.info(f"Valid records: {outcome.valid_count}, skipped: {outcome.skipped_count}")


def _fetch_identity_set(store: MemberStore, table: str) -> set[str]:
    try:
        return store.fetch_emails(table)
    except IdentityFetchError as e:
        raise ProcessingError(f"failed to check existing records: {e}") from e


def deduplicate(
    records: list[MemberRecord],
    imported_emails: set[str],
    account_emails: set[str],
) -> tuple[list[MemberRecord], list[RowRejected]]:
    """Split records into new ones and duplicates.

    Checks run in order: already imported, already has account, repeated
    within the same file. The first match decides the reason.
    """
    imported = {e.lower() for e in imported_emails}
    accounts = {e.lower() for e in account_emails}
    seen: set[str] = set()
    fresh: list[MemberRecord] = []
    dropped: list[RowRejected] = []
    for rec in records:
        key = rec.email.lower()
        row_number = rec.row_number if rec.row_number is not None else -1
        if key in imported:
            dropped.append(RowRejected(row_number, REASON_ALREADY_IMPORTED, rec.email))
        elif key in accounts:
            dropped.append(RowRejected(row_number, REASON_HAS_ACCOUNT, rec.email))
        elif key in seen:
            dropped.append(RowRejected(row_number, REASON_DUPLICATE_IN_FILE, rec.email))
        else:
            seen.add(key)
            fresh.append(rec)
    return fresh, dropped


def persist_batches(
    records: list[MemberRecord],
    store: MemberStore,
    batch_size: int,
    error_log: ErrorLogBuffer | None = None,
    source: str = "",
) -> list[BatchResult]:
    """Submit records sequentially in fixed-size batches.

    A BatchInsertError marks that batch failed; remaining batches still run.
    """
    if batch_size < 1:
        raise ProcessingError(f"batch_size must be >= 1 (got {batch_size})")
    total_batches = (len(records) + batch_size - 1) // batch_size
    results: list[BatchResult] = []
    stats = BatchStatsAccumulator()

    def on_metrics(m: BatchMetrics) -> None:
        stats.add_batch_time(m.elapsed_seconds)

    with ProgressTracker(len(records)) as progress:
        for number, offset in enumerate(range(0, len(records), batch_size), start=1):
            batch = records[offset:offset + batch_size]
            progress.start_batch(number, total_batches)
            started = time.perf_counter()
            try:
                store.insert_members(batch, metrics_callback=on_metrics)
            except BatchInsertError as e:
                elapsed = time.perf_counter() - started
                logger.error(f"Batch {number} failed: {e}")
                results.append(BatchResult(number, len(batch), False, elapsed, str(e)))
                if error_log is not None:
                    error_log.append(
                        ErrorRecord.create(source, -1, "BATCH_FAILED", f"batch {number} ({len(batch)} records): {e}")
                    )
            else:
                elapsed = time.perf_counter() - started
                logger.info(f"Batch {number}: {len(batch)} records")
                results.append(BatchResult(number, len(batch), True, elapsed))
            progress.finish_batch(len(batch))
            progress.set_postfix(
                ok=sum(1 for r in results if r.success),
                failed=sum(1 for r in results if not r.success),
            )

    total, avg, p95 = stats.get_stats()
    if total:
        logger.debug(f"batch timing: batches={total} avg_sec={avg:.4f} p95_sec={p95:.4f}")
    return results


def _record_skips(outcome: ImportOutcome, error_log: ErrorLogBuffer, skipped: list[RowRejected], error_type: str) -> None:
    for s in skipped:
        error_log.append(ErrorRecord.create(outcome.source_file, s.row_number, error_type, s.message))


def process_import(
    config: ImportConfig,
    store: MemberStore | None,
    *,
    dry_run: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportOutcome:
    """Run the whole import.

    Args:
        config: Import configuration
        store: Persistence collaborator (may be None only when dry_run)
        dry_run: Stop after the transform step; nothing is read from or
            written to the store
        error_log: Buffer receiving skipped rows / failed batches; flushed
            once at the end

    Raises:
        ProcessingError: unreadable source or failed identity-set fetch
    """
    if store is None and not dry_run:
        raise ProcessingError("no member store configured")
    if error_log is None:
        error_log = ErrorLogBuffer()

    start_time = datetime.now(UTC)
    grid = load_grid(config)
    outcome = ImportOutcome(source_file=grid.source, start_time=start_time, dry_run=dry_run)

    transform_rows(grid, config, outcome)
    _record_skips(outcome, error_log, outcome.skipped, "ROW_REJECTED")

    if dry_run or store is None:
        outcome.to_import = list(outcome.accepted)
        logger.info(f"Dry run: {len(outcome.to_import)} records would be checked and imported")
    else:
        logger.info("Checking for duplicates...")
        imported_emails = _fetch_identity_set(store, store.tables.imported_members)
        account_emails = _fetch_identity_set(store, store.tables.profiles)
        fresh, dropped = deduplicate(outcome.accepted, imported_emails, account_emails)
        outcome.to_import = fresh
        outcome.skipped.extend(dropped)
        _record_skips(outcome, error_log, dropped, "DUPLICATE")
        logger.info(f"New records to import: {len(fresh)}")

        if fresh:
            outcome.batches = persist_batches(
                fresh, store, config.batch_size, error_log=error_log, source=grid.source
            )
        else:
            logger.info("No new records to import.")

    outcome.end_time = datetime.now(UTC)
    try:
        path = error_log.flush()
    except OSError as e:
        logger.warning(f"failed to write error log: {e}")
    else:
        if path is not None:
            logger.info(f"Error log written: {path}")
    return outcome
