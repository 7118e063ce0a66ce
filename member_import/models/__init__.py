"""Domain models for the legacy member import tool."""

from .config_models import ColumnMapping, DatabaseConfig, ImportConfig, TableConfig
from .error_record import ErrorRecord
from .import_outcome import BatchResult, BatchStatsAccumulator, ImportOutcome
from .member_record import INSERT_COLUMNS, MemberRecord, MembershipType
from .row_result import RowAccepted, RowRejected, RowResult

__all__ = [
    # Configuration models
    "ColumnMapping",
    "DatabaseConfig",
    "ImportConfig",
    "TableConfig",
    # Processing models
    "ErrorRecord",
    "MemberRecord",
    "MembershipType",
    "INSERT_COLUMNS",
    "RowAccepted",
    "RowRejected",
    "RowResult",
    # Results
    "BatchResult",
    "BatchStatsAccumulator",
    "ImportOutcome",
]
