from __future__ import annotations

from ..models.import_outcome import ImportOutcome

"""Summary rendering for an import run.

SUMMARY line format:

    SUMMARY rows={n} valid={n} skipped={n} imported={n} failed={n}
    batches={ok}/{total} elapsed_sec={s}

followed by one ``{reason}: {count}`` line per skip reason, most frequent
first.
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
    "render_skip_reasons",
]


def format_seconds(value: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.3f}".rstrip('0').rstrip('.')


def render_summary_line(outcome: ImportOutcome) -> str:
    """Render the SUMMARY line of an ImportOutcome.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2025, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> o = ImportOutcome(source_file="SOOOP.xlsx", start_time=start, end_time=end)
        >>> render_summary_line(o)
        'SUMMARY rows=0 valid=0 skipped=0 imported=0 failed=0 batches=0/0 elapsed_sec=2'
    """
    ok_batches = len(outcome.batches) - len(outcome.failed_batches)
    line = (
        f"SUMMARY rows={outcome.total_rows} "
        f"valid={outcome.valid_count} "
        f"skipped={outcome.skipped_count} "
        f"imported={outcome.imported_count} "
        f"failed={outcome.failed_count} "
        f"batches={ok_batches}/{len(outcome.batches)} "
        f"elapsed_sec={format_seconds(outcome.elapsed_seconds)}"
    )
    if outcome.dry_run:
        line += " dry_run=1"
    return line


def render_skip_reasons(outcome: ImportOutcome) -> list[str]:
    # Counter.most_common keeps first-seen order for ties
    return [f"{reason}: {count}" for reason, count in outcome.skip_reasons().most_common()]
