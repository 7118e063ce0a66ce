from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pandas as pd  # type: ignore
import pytest

from member_import.cli.__main__ import main as cli_main
from member_import.models.member_record import MembershipType

"""Integration test: successful run against a real workbook with messy legacy cells.

The workbook has a cover sheet in front of the member sheet, so the configured
sheet name is what selects the data.
"""


def _make_excel_file(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        for sheet_name, rows in sheets.items():
            width = max(len(r) for r in rows)
            padded = [list(r) + [None] * (width - len(r)) for r in rows]
            pd.DataFrame(padded, dtype=object).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture
def legacy_workbook(temp_workdir: Path, legacy_row, make_member_row) -> Path:
    members = [
        ["Timestamp", "Username", "Name", "Father's Name", "CNIC Number"],  # header (ignored)
        legacy_row(
            timestamp="2025/08/22 11:06:30 PM GMT+5",
            email="ayesha@example.pk",
            full_name="Ayesha Khan",
            father_name="Imran Khan",
            cnic=3520140000000,
            contact_number=3001234567,
            membership_type="Overseas Member (Fee Rs. 5000)",
            gender="Female",
            date_of_birth=36526,
            has_relevant_pg="MPhil Physics",
            has_non_relevant_pg="nil",
            photo_url="https://forms.example/photo/1",
            blood_group="ab+ve",
            transaction_id="TX-1001",
        ),
        legacy_row(
            timestamp="2025/09/01 09:00:00 AM GMT+5",
            email=" Bilal.Ahmed@Example.COM ",
            full_name="Bilal Ahmed",
            cnic="3.52014E+12",
            contact_number="0308-6214848",
            membership_type="Associate Member",
            date_of_birth="15-Mar-85",
            has_non_relevant_pg="MBA",
            blood_group="O positive",
        ),
        make_member_row(3),
    ]
    return _make_excel_file(
        temp_workdir / "data" / "legacy.xlsx",
        {"Cover": [["Membership export"], ["generated by forms"]], "Members": members},
    )


@pytest.fixture
def legacy_config(temp_workdir: Path) -> Path:
    p = temp_workdir / "config" / "import.yml"
    p.write_text(
        "source_file: ./data/legacy.xlsx\n"
        "sheet: Members\n"
        "batch_size: 2\n"
        "database:\n"
        "  host: localhost\n",
        encoding="utf-8",
    )
    return p


def _patch_store(store: Any):
    @contextmanager
    def _open(cfg):
        yield store
    return patch("member_import.cli.__main__._open_store", _open)


def test_run_success_normalizes_and_imports(legacy_workbook, legacy_config, store_factory, capsys):
    store = store_factory()
    with _patch_store(store):
        code = cli_main([])
    out = capsys.readouterr().out

    assert code == 0
    assert "INFO Batch 1: 2 records" in out
    assert "INFO Batch 2: 1 records" in out
    assert "SUMMARY rows=3 valid=3 skipped=0 imported=3 failed=0 batches=2/2" in out
    assert "Skipped reasons:" not in out
    assert store.batch_calls == 2

    ayesha, bilal, third = store.inserted
    assert ayesha.email == "ayesha@example.pk"
    assert ayesha.cnic == "35201-4000000-0"
    assert ayesha.contact_number == "03001234567"
    assert ayesha.membership_type is MembershipType.OVERSEAS
    assert ayesha.date_of_birth == "2000-01-01"
    assert ayesha.blood_group == "AB+"
    assert ayesha.has_relevant_pg is True
    assert ayesha.has_non_relevant_pg is False
    assert ayesha.subscription_start_date == datetime(2025, 8, 22)
    assert ayesha.subscription_end_date == datetime(2026, 8, 22)
    assert ayesha.transaction_id == "TX-1001"
    assert ayesha.raw_data["row_index"] == 2
    assert "https://forms.example/photo/1" in ayesha.raw_data["original"]

    assert bilal.email == "bilal.ahmed@example.com"
    assert bilal.cnic == "35201-4000000-0"
    assert bilal.contact_number == "03086214848"
    assert bilal.membership_type is MembershipType.ASSOCIATE
    assert bilal.date_of_birth == "1985-03-15"
    assert bilal.blood_group == "O+"
    assert bilal.has_relevant_pg is False
    assert bilal.has_non_relevant_pg is True

    assert third.membership_type is MembershipType.FULL
    assert third.raw_data["row_index"] == 4


def test_run_success_writes_no_error_log(legacy_workbook, legacy_config, store_factory, temp_workdir: Path, capsys):
    with _patch_store(store_factory()):
        assert cli_main([]) == 0
    assert list((temp_workdir / "logs").glob("errors-*.log")) == []
    assert "Error log written" not in capsys.readouterr().out
