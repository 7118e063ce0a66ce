from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar per run counting records submitted to the store. In non-TTY
environments (CI, redirected output) no bar is created, so log output stays
free of control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Record-level progress for batch submission."""

    def __init__(self, total_records: int, *, description: str = "Importing") -> None:
        self.total_records = total_records
        self.description = description
        self.current_batch = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_records,
                desc=description,
                unit="rec",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_batch(self, batch_number: int, total_batches: int) -> None:
        self.current_batch = batch_number
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} (batch {batch_number}/{total_batches})")

    def finish_batch(self, size: int) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.update(size)
            self.pbar.set_description(self.description)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
