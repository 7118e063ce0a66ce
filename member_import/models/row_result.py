from __future__ import annotations

from dataclasses import dataclass

from .member_record import MemberRecord

"""Tagged result of transforming one legacy row.

Bad data is frequent in the legacy export, so the row transformer returns a
RowRejected value instead of raising.
"""

__all__ = [
    "RowAccepted",
    "RowRejected",
    "RowResult",
    "REASON_INCOMPLETE_ROW",
    "REASON_INVALID_EMAIL",
    "REASON_MISSING_NAME",
    "REASON_UNEXPECTED",
    "REASON_ALREADY_IMPORTED",
    "REASON_HAS_ACCOUNT",
    "REASON_DUPLICATE_IN_FILE",
]

REASON_INCOMPLETE_ROW = "Empty or incomplete row"
REASON_INVALID_EMAIL = "Invalid or missing email"
REASON_MISSING_NAME = "Missing name"
REASON_UNEXPECTED = "Unexpected error"
# dedup 段階
REASON_ALREADY_IMPORTED = "Already imported"
REASON_HAS_ACCOUNT = "Already has account"
REASON_DUPLICATE_IN_FILE = "Duplicate email in file"


@dataclass(frozen=True)
class RowAccepted:
    record: MemberRecord


@dataclass(frozen=True)
class RowRejected:
    row_number: int  # 1-based spreadsheet row
    reason: str  # grouping key for the report
    detail: str | None = None  # e.g. the offending email

    @property
    def message(self) -> str:
        return f"{self.reason}: {self.detail}" if self.detail else self.reason


RowResult = RowAccepted | RowRejected
