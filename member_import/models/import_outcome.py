from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from .member_record import MemberRecord
from .row_result import RowRejected

"""Import outcome models for the legacy member import tool.

ImportOutcome aggregates one run: accepted records, skipped rows and per-batch
persistence results. It is created at run start, rendered into the SUMMARY
report at run end and then discarded.
"""

__all__ = [
    "BatchResult",
    "ImportOutcome",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class BatchResult:
    """Result of submitting one batch to the persistence store."""
    batch_number: int  # 1-based
    size: int
    success: bool
    elapsed_seconds: float = 0.0
    error: str | None = None


@dataclass
class ImportOutcome:
    source_file: str
    start_time: datetime
    total_rows: int = 0  # data rows (header excluded)
    accepted: list[MemberRecord] = field(default_factory=list)  # passed transform
    skipped: list[RowRejected] = field(default_factory=list)
    to_import: list[MemberRecord] = field(default_factory=list)  # survived dedup
    batches: list[BatchResult] = field(default_factory=list)
    end_time: datetime | None = None
    dry_run: bool = False

    @property
    def valid_count(self) -> int:
        return len(self.accepted)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def imported_count(self) -> int:
        return sum(b.size for b in self.batches if b.success)

    @property
    def failed_count(self) -> int:
        return sum(b.size for b in self.batches if not b.success)

    @property
    def failed_batches(self) -> list[BatchResult]:
        return [b for b in self.batches if not b.success]

    @property
    def elapsed_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def skip_reasons(self) -> Counter[str]:
        """Frequency table of skip reasons."""
        return Counter(r.reason for r in self.skipped)


class BatchStatsAccumulator:
    """Helper class to accumulate batch timing statistics."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
