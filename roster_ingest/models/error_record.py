from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

"""One line of the JSON Lines error log.

Keys are fixed: timestamp, file, sheet, row, error_type, message. ``message``
is the exact text that went into the ledger's ``errors`` list, so an admin
can grep the log for what the upload response showed.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
    "FILE_LEVEL_SHEET",
]

FILE_LEVEL_ROW = -1
FILE_LEVEL_SHEET = "<FILE_LEVEL>"


def _utc_stamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    """Attributes:
        timestamp: UTC, ISO 8601 with a ``Z`` suffix
        file: uploaded file name
        sheet: first worksheet's title, or ``<FILE_LEVEL>``
        row: 1-based spreadsheet row (header is row 1), -1 for the whole file
        error_type: MISSING_NAME, INVALID_IDENTIFIER, IMAGE_UPLOAD_FAILED, ...
        message: ledger text
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    error_type: str
    message: str

    @classmethod
    def create(cls, file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        return cls(_utc_stamp(), file, sheet, row, error_type, message)

    @classmethod
    def file_level(cls, file: str, message: str, error_type: str = "STRUCTURAL") -> ErrorRecord:
        """Record for a failure that rejected the whole upload."""
        return cls.create(file, FILE_LEVEL_SHEET, FILE_LEVEL_ROW, error_type, message)

    @property
    def is_file_level(self) -> bool:
        return self.row == FILE_LEVEL_ROW

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
