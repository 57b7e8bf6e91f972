from __future__ import annotations

"""Structural ingestion failures.

Anything raised from here aborts an upload before a single row is touched;
row-level problems are ledger entries, never exceptions.
"""

__all__ = [
    "IngestionError",
    "FileTooLargeError",
    "WorkbookFormatError",
    "MissingColumnsError",
]


class IngestionError(Exception):
    """Base class for failures that reject the whole upload."""


class FileTooLargeError(IngestionError):
    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File too large. Maximum size is {max_size / 1024 / 1024:.0f}MB. "
            f"Your file is {size / 1024 / 1024:.2f}MB ({size} bytes > {max_size} bytes)."
        )


class WorkbookFormatError(IngestionError):
    """Raised when the buffer is not a readable workbook or has no sheets."""


class MissingColumnsError(IngestionError):
    """Raised when mandatory header columns are absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Excel file must contain "
            + ", ".join(f"'{m}'" for m in self.missing)
            + (" column." if len(self.missing) == 1 else " columns.")
        )
