from __future__ import annotations

import logging
import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from ..models.member_record import MembershipType

"""Field-level normalizers for legacy membership cells.

Every function takes one raw cell (str / int / float / datetime / None) and
returns a normalized value, ``None`` or a best-effort passthrough. None of them
raise: a bad field must never abort its row.

Spreadsheet auto-formatting turned long numeric identifiers into scientific
notation ("3.52014E+12"), so identity numbers and phones are re-rendered as
integers before the digits are extracted.
"""

__all__ = [
    "cell_text",
    "fix_cnic",
    "normalize_phone",
    "parse_date",
    "parse_timestamp",
    "normalize_blood_group",
    "extract_membership_type",
    "has_relevant_pg",
    "has_non_relevant_pg",
    "BLOOD_GROUP_PATTERNS",
    "MEMBERSHIP_KEYWORDS",
]

logger = logging.getLogger(__name__)

# Spreadsheet serial day 0 (includes the 1900 leap year bug offset)
EXCEL_EPOCH = datetime(1899, 12, 30)

CNIC_DIGITS = 13
COUNTRY_CODE = "92"
LOCAL_PHONE_DIGITS = 10

_NON_DIGIT = re.compile(r"\D")

_MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    "january": 1, "february": 2, "march": 3, "april": 4, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
    "december": 12,
}

_SLASH_MDY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DASH_D_MON_YY = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2})$")
_MONTH_NAME_D_Y = re.compile(r"^([A-Za-z]+)\s+(\d{1,2}),?\s*(\d{4})$")
_SPACE_DMY = re.compile(r"^(\d{1,2})\s+(\d{1,2})\s+(\d{4})$")
_DOT_DMY = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")

# "2025/08/22 11:06:30 PM GMT+5" -> date part only
_TIMESTAMP_PREFIX = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})")

# serial day numbers that arrived as text (CSV exports)
_SERIAL_TEXT = re.compile(r"^\d{5}(\.\d+)?$")

# Ordered: first containment match wins. AB must precede A/B ("ab+" contains "b+").
BLOOD_GROUP_PATTERNS: tuple[tuple[str, str], ...] = (
    ("ab+", "AB+"), ("ab positive", "AB+"), ("ab+ve", "AB+"), ("ab +", "AB+"), ("ab pos", "AB+"),
    ("ab-", "AB-"), ("ab negative", "AB-"), ("ab-ve", "AB-"), ("ab -", "AB-"), ("ab neg", "AB-"),
    ("o+", "O+"), ("o positive", "O+"), ("o+ve", "O+"), ("o +", "O+"), ("o pos", "O+"),
    ("o-", "O-"), ("o negative", "O-"), ("o-ve", "O-"), ("o -", "O-"), ("o neg", "O-"),
    ("a+", "A+"), ("a positive", "A+"), ("a+ve", "A+"), ("a +", "A+"), ("a pos", "A+"),
    ("a-", "A-"), ("a negative", "A-"), ("a-ve", "A-"), ("a -", "A-"), ("a neg", "A-"),
    ("b+", "B+"), ("b positive", "B+"), ("b+ve", "B+"), ("b +", "B+"), ("b pos", "B+"),
    ("b-", "B-"), ("b negative", "B-"), ("b-ve", "B-"), ("b -", "B-"), ("b neg", "B-"),
)

# Ordered by priority
MEMBERSHIP_KEYWORDS: tuple[tuple[str, MembershipType], ...] = (
    ("full member", MembershipType.FULL),
    ("overseas", MembershipType.OVERSEAS),
    ("associate", MembershipType.ASSOCIATE),
    ("student", MembershipType.STUDENT),
    ("renewal", MembershipType.RENEWAL),
)

RELEVANT_PG_MARKERS: tuple[str, ...] = ("mphil", "phd", "pgd")
NEGATIVE_MARKERS: frozenset[str] = frozenset({"nil", "no", "none", "n/a", "-"})


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def cell_text(value: Any) -> str | None:
    """Trimmed text of a cell, or None for empty cells.

    Integral floats (pandas reads 12345 as 12345.0 in sparse columns) lose
    their ``.0``; datetimes render ISO.
    """
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def _repair_numeric_text(value: Any) -> str:
    """Undo scientific notation; numeric cells render as plain integers."""
    if _is_number(value):
        if isinstance(value, float) and not math.isfinite(value):
            return str(value)
        return f"{value:.0f}"
    text = str(value).strip()
    if "e" in text.lower():
        try:
            num = float(text)
        except ValueError:
            return text
        if math.isfinite(num):
            return f"{num:.0f}"
    return text


def fix_cnic(value: Any) -> str | None:
    """Repair a national identity number.

    13 digits -> ``NNNNN-NNNNNNN-N``; any other digit count is returned as the
    bare digit string. Text without digits is passed through trimmed.
    """
    if _is_missing(value):
        return None
    text = _repair_numeric_text(value)
    digits = _NON_DIGIT.sub("", text)
    if len(digits) == CNIC_DIGITS:
        return f"{digits[:5]}-{digits[5:12]}-{digits[12:]}"
    return digits or text


def normalize_phone(value: Any) -> str | None:
    """Normalize a contact number to the local 0XXXXXXXXXX form.

    Handles ``3259129090``, ``0305 4337799`` and ``0308-6214848``. A leading
    92 country code is dropped from numbers longer than 10 digits.
    """
    if _is_missing(value):
        return None
    text = _repair_numeric_text(value)
    digits = _NON_DIGIT.sub("", text)
    if digits.startswith(COUNTRY_CODE) and len(digits) > LOCAL_PHONE_DIGITS:
        return digits[len(COUNTRY_CODE):]
    if len(digits) == LOCAL_PHONE_DIGITS and not digits.startswith("0"):
        return "0" + digits
    return digits or text


def _iso(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _serial_to_datetime(serial: float) -> datetime:
    return EXCEL_EPOCH + timedelta(days=serial)


def _coerce_serial_text(value: Any) -> Any:
    if isinstance(value, str) and _SERIAL_TEXT.match(value.strip()):
        return float(value)
    return value


def _match_known_layouts(text: str) -> str | None:
    m = _SLASH_MDY.match(text)
    if m:
        return _iso(int(m.group(3)), int(m.group(1)), int(m.group(2)))

    m = _DASH_D_MON_YY.match(text)
    if m:
        yy = int(m.group(3))
        year = 1900 + yy if yy > 50 else 2000 + yy
        month = _MONTHS.get(m.group(2).lower(), 1)
        return _iso(year, month, int(m.group(1)))

    m = _MONTH_NAME_D_Y.match(text)
    if m:
        month = _MONTHS.get(m.group(1).lower(), 1)
        return _iso(int(m.group(3)), month, int(m.group(2)))

    m = _SPACE_DMY.match(text)
    if m:
        return _iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))

    m = _DOT_DMY.match(text)
    if m:
        return _iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))
    return None


def _generic_parse(text: str) -> datetime | None:
    # pandas resolves "now" / "today"; text without digits is never a date
    if not any(c.isdigit() for c in text):
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def parse_date(value: Any) -> str | None:
    """Parse a legacy date cell into ``YYYY-MM-DD``.

    Layouts, tried in order (first match wins):

    1. spreadsheet serial number (days since 1899-12-30, also as 5-digit
       text from CSV exports) or a native date cell
    2. ``M/D/YYYY``
    3. ``D-Mon-YY`` (YY > 50 -> 19YY, else 20YY)
    4. ``Month D, YYYY``
    5. ``D M YYYY``
    6. ``D.M.YYYY``

    Anything else containing digits goes through the generic pandas parser.
    Returns None (with a warning) when nothing understands the value.
    """
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    value = _coerce_serial_text(value)
    if _is_number(value):
        try:
            return _serial_to_datetime(float(value)).date().isoformat()
        except (OverflowError, ValueError):
            logger.warning(f"Could not parse date serial: {value!r}")
            return None

    text = str(value).strip()
    iso = _match_known_layouts(text)
    if iso is not None:
        return iso

    parsed = _generic_parse(text)
    if parsed is not None:
        return parsed.date().isoformat()

    logger.warning(f"Could not parse date: {text!r}")
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Subscription start from a form timestamp.

    ``2025/08/22 11:06:30 PM GMT+5`` -> ``datetime(2025, 8, 22)`` (local
    midnight). Time of day and the GMT suffix are discarded. Unparseable
    values fall back to the current instant.
    """
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    value = _coerce_serial_text(value)
    if _is_number(value):
        try:
            d = _serial_to_datetime(float(value))
            return datetime(d.year, d.month, d.day)
        except (OverflowError, ValueError):
            pass

    text = str(value).strip()
    m = _TIMESTAMP_PREFIX.match(text)
    if m:
        try:
            return datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            pass

    parsed = _generic_parse(text)
    if parsed is not None:
        return datetime(parsed.year, parsed.month, parsed.day)

    logger.warning(f"Could not parse timestamp {text!r}, using current time")
    return datetime.now()


def normalize_blood_group(value: Any) -> str | None:
    """Canonical ABO/Rh form (``O+``, ``AB-``...) or upper-cased passthrough."""
    if _is_missing(value):
        return None
    text = str(value).strip()
    lowered = text.lower()
    for pattern, canonical in BLOOD_GROUP_PATTERNS:
        if pattern in lowered:
            return canonical
    return text.upper()


def extract_membership_type(value: Any) -> MembershipType:
    """Pick the membership category out of the free-text form answer.

    Empty or unrecognized text defaults to Student.
    """
    if _is_missing(value):
        return MembershipType.STUDENT
    lowered = str(value).lower()
    for keyword, membership_type in MEMBERSHIP_KEYWORDS:
        if keyword in lowered:
            return membership_type
    logger.warning(f"unrecognized membership type {str(value).strip()!r}, defaulting to Student")
    return MembershipType.STUDENT


def has_relevant_pg(value: Any) -> bool:
    if _is_missing(value):
        return False
    lowered = str(value).lower()
    return any(marker in lowered for marker in RELEVANT_PG_MARKERS)


def has_non_relevant_pg(value: Any) -> bool:
    text = cell_text(value)
    if text is None:
        return False
    return text.lower() not in NEGATIVE_MARKERS
