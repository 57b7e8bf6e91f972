from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

from ..models.outcome import IngestionSummary

"""tqdm bar over the accepted rows of an upload.

Only drawn on an interactive terminal; under CI, pipes or a web worker the
tracker just counts.
"""

__all__ = [
    "RowProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class RowProgressTracker:
    def __init__(self, total_rows: int, *, description: str = "Importing students", enabled: bool | None = None) -> None:
        self.total_rows = total_rows
        self.description = description
        self.current_row = 0
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: Any = None
        if self.enabled:
            self.pbar = tqdm(total=total_rows, desc=description, unit="row", leave=True, ncols=80, ascii=True)

    def advance(self, summary: IngestionSummary | None = None) -> None:
        """Count one finished row; with a summary, show the running tallies."""
        self.current_row += 1
        if self.pbar is None:
            return
        self.pbar.update(1)
        if summary is not None:
            self.pbar.set_postfix(
                created=summary.created_count,
                skipped=summary.skipped_count,
                errors=summary.error_count,
            )

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
        self.pbar = None

    def __enter__(self) -> RowProgressTracker:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
