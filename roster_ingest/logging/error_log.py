from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-run buffer of failed rows, written out as JSON Lines.

The file is ``<logs dir>/errors-YYYYMMDD-HHMMSS.log`` (UTC), named when the
first flush actually has something to write; a clean run leaves no file.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIR = Path("logs")


class ErrorLogBuffer:
    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = logs_dir if logs_dir is not None else DEFAULT_LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._path is None:
            stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
            self._path = self.logs_dir / f"errors-{stamp}.log"
        return self._path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._pending)

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def counts_by_type(self) -> dict[str, int]:
        return dict(Counter(r.error_type for r in self._pending))

    def __len__(self) -> int:
        return len(self._pending)

    def flush(self) -> Path | None:
        """Append pending records to the log file and clear the buffer.

        Returns the file written to, or None when there was nothing pending.
        """
        if not self._pending:
            return None
        path = self.file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = "".join(r.to_json_line() + "\n" for r in self._pending)
        with path.open("a", encoding="utf-8") as f:
            f.write(lines)
        self._pending.clear()
        return path
