from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from psycopg2.extras import Json

from ..models.config_models import TableConfig
from ..models.member_record import INSERT_COLUMNS, MemberRecord
from .batch_insert import BatchInsertError, BatchMetrics, InsertResult, batch_insert

"""Persistence collaborator for the member import.

MemberStore is what the orchestrator depends on: read the email identity sets,
insert a batch of records. PostgresMemberStore implements it on a psycopg2
cursor whose connection runs in autocommit mode; each inserted batch gets its
own explicit BEGIN/COMMIT so a failing batch never takes others down with it.
"""

__all__ = [
    "IdentityFetchError",
    "MemberStore",
    "PostgresMemberStore",
]

logger = logging.getLogger(__name__)


class IdentityFetchError(Exception):
    """Raised when an existing-email set cannot be read."""


class MemberStore(Protocol):
    tables: TableConfig

    def fetch_emails(self, table: str) -> set[str]: ...

    def insert_members(
        self,
        records: Sequence[MemberRecord],
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> InsertResult: ...


class PostgresMemberStore:
    def __init__(self, cursor: Any, tables: TableConfig | None = None) -> None:
        self.cursor = cursor
        self.tables = tables or TableConfig()

    def fetch_emails(self, table: str) -> set[str]:
        """Lower-cased, non-null emails of ``table``."""
        column = self.tables.email_column
        try:
            self.cursor.execute(f'SELECT "{column}" FROM {table}')
            rows = self.cursor.fetchall()
        except Exception as e:
            raise IdentityFetchError(f"failed to read {table}.{column}: {e}") from e
        emails = {str(r[0]).strip().lower() for r in rows if r[0]}
        logger.debug(f"fetched {len(emails)} emails from {table}")
        return emails

    def insert_members(
        self,
        records: Sequence[MemberRecord],
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> InsertResult:
        """Insert one batch in its own transaction.

        Raises:
            BatchInsertError: the batch was rolled back
        """
        raw_idx = INSERT_COLUMNS.index("raw_data")
        rows = []
        for rec in records:
            values = rec.to_db_row()
            values[raw_idx] = Json(values[raw_idx]) if values[raw_idx] is not None else None
            rows.append(values)

        try:
            self.cursor.execute("BEGIN")
            result = batch_insert(
                self.cursor,
                self.tables.imported_members,
                INSERT_COLUMNS,
                rows,
                page_size=max(len(rows), 1),
                metrics_callback=metrics_callback,
            )
            self.cursor.execute("COMMIT")
        except Exception as e:
            try:
                self.cursor.execute("ROLLBACK")
            except Exception as rb_e:
                logger.debug(f"rollback failed: {rb_e}")
            if isinstance(e, BatchInsertError):
                raise
            raise BatchInsertError(str(e)) from e
        return result
