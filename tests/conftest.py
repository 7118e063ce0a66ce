# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from member_import.db.batch_insert import BatchInsertError, InsertResult
from member_import.db.member_store import IdentityFetchError
from member_import.logging.init import reset_logging
from member_import.models.config_models import DEFAULT_COLUMNS, TableConfig
from member_import.models.member_record import MemberRecord

HEADER = [
    "Timestamp", "Username", "Name", "Father's Name", "CNIC Number", "Contact Number",
    "Membership", "Renewal Card", "Gender", "Date of Birth", "Qualification",
    "Relevant PG", "Non-relevant PG", "College Attended for Graduation",
    "Postgraduate Institution", "Employment Status", "Designation", "Employement City",
    "Province", "Photo", "Residential Address", "CNIC Front", "CNIC Back",
    "Transcript Front", "Transcript Back", "Student ID", "Blood Group",
    "Transaction ID", "Fee Receipt",
]


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        for var in ("DATABASE_URL", "PGDSN", "PGHOST"):
            monkeypatch.delenv(var, raising=False)
        yield p


def make_row(**values: Any) -> list[Any]:
    """Positional legacy row with the given fields set (others None)."""
    row: list[Any] = [None] * len(DEFAULT_COLUMNS)
    for name, v in values.items():
        row[DEFAULT_COLUMNS.index(name)] = v
    return row


def member_row(n: int, **overrides: Any) -> list[Any]:
    values: dict[str, Any] = {
        "timestamp": "2025/08/22 11:06:30 PM GMT+5",
        "email": f"member{n}@example.com",
        "full_name": f"Member {n}",
        "cnic": "35201-4000000-0",
        "contact_number": "0300 1234567",
        "membership_type": "Full Member (Fee Rs.1500)",
        "blood_group": "O+",
    }
    values.update(overrides)
    return make_row(**values)


@pytest.fixture()
def legacy_row() -> Callable[..., list[Any]]:
    return make_row


def write_workbook(path: Path, data_rows: Sequence[Sequence[Any]], header: Sequence[Any] = HEADER) -> Path:
    rows = [list(header)] + [list(r) for r in data_rows]
    width = max(len(r) for r in rows)
    padded = [r + [None] * (width - len(r)) for r in rows]
    pd.DataFrame(padded, dtype=object).to_excel(path, header=False, index=False)
    return path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/SOOOP.xlsx
batch_size: 50
timezone: UTC
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_workbook(temp_workdir: Path) -> Path:
    rows = [member_row(i) for i in range(1, 4)]
    rows.append(make_row(full_name="No Email"))  # rejected
    return write_workbook(temp_workdir / "data" / "SOOOP.xlsx", rows)


class FakeStore:
    """In-memory MemberStore."""

    def __init__(
        self,
        imported: set[str] | None = None,
        profiles: set[str] | None = None,
        fail_batches: set[int] | None = None,
        fail_fetch: str | None = None,
    ) -> None:
        self.tables = TableConfig()
        self.imported = set(imported or ())
        self.profiles = set(profiles or ())
        self.fail_batches = set(fail_batches or ())
        self.fail_fetch = fail_fetch
        self.batch_calls = 0
        self.inserted: list[MemberRecord] = []

    def fetch_emails(self, table: str) -> set[str]:
        if table == self.fail_fetch:
            raise IdentityFetchError(f"permission denied for table {table}")
        return set(self.imported if table == self.tables.imported_members else self.profiles)

    def insert_members(self, records, metrics_callback=None) -> InsertResult:
        self.batch_calls += 1
        if self.batch_calls in self.fail_batches:
            raise BatchInsertError("connection reset by peer")
        self.inserted.extend(records)
        return InsertResult(inserted_rows=len(records))


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def make_member_row() -> Callable[..., list[Any]]:
    return member_row


@pytest.fixture()
def workbook_writer() -> Callable[..., Path]:
    return write_workbook


@pytest.fixture()
def store_factory() -> Callable[..., FakeStore]:
    return FakeStore
