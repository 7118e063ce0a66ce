from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any

"""MemberRecord domain model.

A MemberRecord is one legacy row after normalization, shaped like a row of the
``imported_members`` table. Instances only exist for rows that passed the
row-level validity gate (email with "@", non-empty name).
"""

__all__ = [
    "MembershipType",
    "MemberRecord",
    "INSERT_COLUMNS",
]


class MembershipType(str, Enum):
    """Membership categories accepted by the society."""
    FULL = "Full"
    OVERSEAS = "Overseas"
    ASSOCIATE = "Associate"
    STUDENT = "Student"
    RENEWAL = "Renewal"


@dataclass(frozen=True)
class MemberRecord:
    email: str  # lower-cased
    full_name: str
    father_name: str | None = None
    cnic: str | None = None  # NNNNN-NNNNNNN-N when 13 digits
    contact_number: str | None = None
    membership_type: MembershipType = MembershipType.STUDENT
    gender: str | None = None
    date_of_birth: str | None = None  # YYYY-MM-DD
    blood_group: str | None = None
    qualification: str | None = None
    has_relevant_pg: bool = False
    has_non_relevant_pg: bool = False
    college_attended: str | None = None
    post_graduate_institution: str | None = None
    employment_status: str | None = None
    designation: str | None = None
    city: str | None = None
    province: str | None = None
    residential_address: str | None = None
    subscription_start_date: datetime | None = None  # local midnight
    subscription_end_date: datetime | None = None  # start + 365 days
    transaction_id: str | None = None
    raw_data: dict[str, Any] | None = None  # {"row_index": n, "original": [...]}

    @property
    def row_number(self) -> int | None:
        if self.raw_data is None:
            return None
        return self.raw_data.get("row_index")

    def to_db_row(self) -> list[Any]:
        """Values in INSERT_COLUMNS order (enum flattened to its value)."""
        values: list[Any] = []
        for col in INSERT_COLUMNS:
            v = getattr(self, col)
            if isinstance(v, MembershipType):
                v = v.value
            values.append(v)
        return values


INSERT_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(MemberRecord))
