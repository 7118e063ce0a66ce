from __future__ import annotations

import re
from datetime import datetime, timezone

import pytest

from member_import.models.import_outcome import BatchResult, ImportOutcome
from member_import.models.row_result import (
    REASON_ALREADY_IMPORTED,
    REASON_INVALID_EMAIL,
    REASON_MISSING_NAME,
    RowRejected,
)
from member_import.services.summary import format_seconds, render_skip_reasons, render_summary_line

"""Unit tests for summary rendering."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+rows=([0-9]+)\s+valid=([0-9]+)\s+skipped=([0-9]+)\s+"
    r"imported=([0-9]+)\s+failed=([0-9]+)\s+batches=([0-9]+)/([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)( dry_run=1)?$"
)

START = datetime(2025, 8, 22, 10, 0, 0, tzinfo=timezone.utc)
END = datetime(2025, 8, 22, 10, 0, 3, tzinfo=timezone.utc)


def _outcome(**kwargs) -> ImportOutcome:
    return ImportOutcome(source_file="SOOOP.xlsx", start_time=START, end_time=END, **kwargs)


def test_render_summary_line_partial_failure():
    outcome = _outcome(
        total_rows=125,
        batches=[
            BatchResult(1, 50, True),
            BatchResult(2, 50, False, error="timeout"),
            BatchResult(3, 20, True),
        ],
        skipped=[RowRejected(3, REASON_INVALID_EMAIL)] * 5,
    )
    line = render_summary_line(outcome)
    assert SUMMARY_PATTERN.match(line)
    assert line == (
        "SUMMARY rows=125 valid=0 skipped=5 imported=70 failed=50 "
        "batches=2/3 elapsed_sec=3"
    )


def test_render_summary_line_dry_run_suffix():
    line = render_summary_line(_outcome(dry_run=True))
    m = SUMMARY_PATTERN.match(line)
    assert m is not None
    assert line.endswith(" dry_run=1")


def test_elapsed_zero_when_not_finished():
    outcome = ImportOutcome(source_file="SOOOP.xlsx", start_time=START)
    assert outcome.elapsed_seconds == 0.0
    assert "elapsed_sec=0" in render_summary_line(outcome)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "0"),
        (2.0, "2"),
        (1.5, "1.5"),
        (0.1234, "0.123"),
        (0.000123, "0.000123"),
    ],
)
def test_format_seconds(value, expected):
    assert format_seconds(value) == expected


def test_render_skip_reasons_most_frequent_first():
    outcome = _outcome(
        skipped=[
            RowRejected(2, REASON_MISSING_NAME),
            RowRejected(3, REASON_INVALID_EMAIL),
            RowRejected(4, REASON_ALREADY_IMPORTED, "a@b.com"),
            RowRejected(5, REASON_ALREADY_IMPORTED, "c@d.com"),
            RowRejected(6, REASON_ALREADY_IMPORTED, "e@f.com"),
            RowRejected(7, REASON_INVALID_EMAIL),
        ]
    )
    assert render_skip_reasons(outcome) == [
        "Already imported: 3",
        "Invalid or missing email: 2",
        "Missing name: 1",
    ]


def test_render_skip_reasons_empty():
    assert render_skip_reasons(_outcome()) == []
