from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the legacy member import tool.

These are the typed results of the YAML loading performed in
member_import/config/loader.py. The column mapping is an explicit structure
handed to the row transformer instead of a module level table.
"""

__all__ = [
    "DEFAULT_COLUMNS",
    "DEFAULT_SKIP_FIELDS",
    "ColumnMapping",
    "DatabaseConfig",
    "ImportConfig",
    "TableConfig",
]

# Column order of the legacy membership export (29 columns)
DEFAULT_COLUMNS: tuple[str, ...] = (
    "timestamp",
    "email",
    "full_name",
    "father_name",
    "cnic",
    "contact_number",
    "membership_type",
    "renewal_card_url",
    "gender",
    "date_of_birth",
    "qualification",
    "has_relevant_pg",
    "has_non_relevant_pg",
    "college_attended",
    "post_graduate_institution",
    "employment_status",
    "designation",
    "city",
    "province",
    "photo_url",
    "residential_address",
    "cnic_front_url",
    "cnic_back_url",
    "transcript_front_url",
    "transcript_back_url",
    "student_id_url",
    "blood_group",
    "transaction_id",
    "receipt_url",
)

# Drive links in the export; they cannot be migrated
DEFAULT_SKIP_FIELDS: frozenset[str] = frozenset({
    "renewal_card_url",
    "photo_url",
    "cnic_front_url",
    "cnic_back_url",
    "transcript_front_url",
    "transcript_back_url",
    "student_id_url",
    "receipt_url",
})


@dataclass(frozen=True)
class ColumnMapping:
    """Positional column layout of a legacy row.

    ``columns`` is the ordered field list (index = spreadsheet column);
    ``skip_fields`` names columns that are never normalized.
    """
    columns: tuple[str, ...] = DEFAULT_COLUMNS
    skip_fields: frozenset[str] = DEFAULT_SKIP_FIELDS

    def index_of(self, field_name: str) -> int | None:
        try:
            return self.columns.index(field_name)
        except ValueError:
            return None

    def value(self, row: list[object], field_name: str) -> object | None:
        """Return the raw cell for ``field_name`` or None when absent/skipped."""
        if field_name in self.skip_fields:
            return None
        idx = self.index_of(field_name)
        if idx is None or idx >= len(row):
            return None
        return row[idx]


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback.

    Environment variables (DATABASE_URL / PGDSN / PG*) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class TableConfig:
    imported_members: str = "imported_members"  # insert target + "already imported" set
    profiles: str = "profiles"  # active accounts
    email_column: str = "email"


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    source_file: str
    sheet: str | None = None  # None -> first sheet
    batch_size: int = 50
    timezone: str = "UTC"
    mapping: ColumnMapping = field(default_factory=ColumnMapping)
    tables: TableConfig = field(default_factory=TableConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
