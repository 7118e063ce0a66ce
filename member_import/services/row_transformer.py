from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from ..models.config_models import ColumnMapping
from ..models.member_record import MemberRecord
from ..models.row_result import (
    REASON_INCOMPLETE_ROW,
    REASON_INVALID_EMAIL,
    REASON_MISSING_NAME,
    REASON_UNEXPECTED,
    RowAccepted,
    RowRejected,
    RowResult,
)
from .normalizers import (
    cell_text,
    extract_membership_type,
    fix_cnic,
    has_non_relevant_pg,
    has_relevant_pg,
    normalize_blood_group,
    normalize_phone,
    parse_date,
    parse_timestamp,
)

"""Row transformer: one legacy row -> MemberRecord or a rejection.

Rows are rejected only for missing identity (too few cells, no usable email,
no name). Every other malformed field degrades to None / best effort.
"""

__all__ = [
    "MIN_ROW_CELLS",
    "SUBSCRIPTION_PERIOD",
    "transform_row",
]

logger = logging.getLogger(__name__)

MIN_ROW_CELLS = 3
SUBSCRIPTION_PERIOD = timedelta(days=365)


def _json_safe(value: Any) -> Any:
    """Cell value usable inside the raw_data JSON payload."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value != value:  # NaN
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _reject(row_number: int, reason: str, detail: str | None = None) -> RowRejected:
    suffix = f" ({detail})" if detail else ""
    logger.warning(f"Row {row_number}: {reason}{suffix}, skipping")
    return RowRejected(row_number=row_number, reason=reason, detail=detail)


def _build_record(row: list[Any], row_number: int, mapping: ColumnMapping) -> RowResult:
    def raw(name: str) -> Any:
        return mapping.value(row, name)

    def text(name: str) -> str | None:
        return cell_text(raw(name))

    email_text = text("email")
    email = email_text.lower() if email_text else None
    if not email or "@" not in email:
        return _reject(row_number, REASON_INVALID_EMAIL, email_text)

    full_name = text("full_name")
    if not full_name:
        return _reject(row_number, REASON_MISSING_NAME, email)

    start = parse_timestamp(raw("timestamp"))
    end = start + SUBSCRIPTION_PERIOD if start is not None else None

    record = MemberRecord(
        email=email,
        full_name=full_name,
        father_name=text("father_name"),
        cnic=fix_cnic(raw("cnic")),
        contact_number=normalize_phone(raw("contact_number")),
        membership_type=extract_membership_type(raw("membership_type")),
        gender=text("gender"),
        date_of_birth=parse_date(raw("date_of_birth")),
        blood_group=normalize_blood_group(raw("blood_group")),
        qualification=text("qualification"),
        has_relevant_pg=has_relevant_pg(raw("has_relevant_pg")),
        has_non_relevant_pg=has_non_relevant_pg(raw("has_non_relevant_pg")),
        college_attended=text("college_attended"),
        post_graduate_institution=text("post_graduate_institution"),
        employment_status=text("employment_status"),
        designation=text("designation"),
        city=text("city"),
        province=text("province"),
        residential_address=text("residential_address"),
        subscription_start_date=start,
        subscription_end_date=end,
        transaction_id=text("transaction_id"),
        raw_data={
            "row_index": row_number,
            "original": [_json_safe(v) for v in row],
        },
    )
    return RowAccepted(record)


def transform_row(
    row: list[Any] | None,
    row_index: int,
    mapping: ColumnMapping | None = None,
) -> RowResult:
    """Transform one positional legacy row.

    Args:
        row: Raw cells in column-mapping order (may be shorter than the mapping)
        row_index: Zero-based index in the sheet grid (header row = 0)
        mapping: Column layout; defaults to the legacy export layout

    Returns:
        RowAccepted carrying the MemberRecord, or RowRejected with a reason.
        Never raises.
    """
    row_number = row_index + 1
    if mapping is None:
        mapping = ColumnMapping()
    if row is None or len(row) < MIN_ROW_CELLS:
        return _reject(row_number, REASON_INCOMPLETE_ROW)
    try:
        return _build_record(list(row), row_number, mapping)
    except Exception as e:  # normalizers degrade on their own; this is the last guard
        logger.error(f"Row {row_number}: unexpected error during normalization: {e}")
        return RowRejected(row_number=row_number, reason=REASON_UNEXPECTED, detail=str(e))
