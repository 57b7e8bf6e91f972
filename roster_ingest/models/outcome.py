from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Union

from .match_trace import MatchTrace
from .student import StudentRecord

"""Per-row ingestion outcomes and the aggregated IngestionSummary (ledger).

Outcomes are tagged values; a single bad row is represented as a Failed
outcome, never as an exception escaping the orchestrator.
"""

__all__ = [
    "Created",
    "Skipped",
    "Failed",
    "IngestionOutcome",
    "IssuedCredential",
    "IngestionSummary",
]


@dataclass(frozen=True)
class Created:
    row_number: int
    record: StudentRecord


@dataclass(frozen=True)
class Skipped:
    row_number: int
    reason: str


@dataclass(frozen=True)
class Failed:
    row_number: int
    reason: str
    error_type: str  # UPPER_SNAKE, mirrors ErrorRecord.error_type


IngestionOutcome = Union[Created, Skipped, Failed]


@dataclass(frozen=True)
class IssuedCredential:
    index_number: str
    password: str

    def __repr__(self) -> str:
        return f"IssuedCredential(index_number={self.index_number!r}, password='***')"


@dataclass
class IngestionSummary:
    """Ledger returned by one ingestion run."""
    total_rows: int = 0  # data rows in the sheet (header excluded)
    created: list[StudentRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    ignored_count: int = 0  # silent skips (blank rows, no usable email)
    warnings: list[str] = field(default_factory=list)
    images_extracted: int = 0
    image_strategy: str | None = None
    trace: list[MatchTrace] = field(default_factory=list)
    credentials: list[IssuedCredential] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    _error_rows: list[int] = field(default_factory=list, init=False, repr=False)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def record(self, outcome: IngestionOutcome) -> None:
        if isinstance(outcome, Created):
            self.created.append(outcome.record)
        elif isinstance(outcome, Skipped):
            self.skipped.append(outcome.reason)
        else:
            # errors stay in spreadsheet row order whatever stage raised them
            at = bisect.bisect_right(self._error_rows, outcome.row_number)
            self._error_rows.insert(at, outcome.row_number)
            self.errors.insert(at, outcome.reason)

    def replace_created(self, record: StudentRecord) -> None:
        """Swap in an updated copy of an already-created record (same id)."""
        for i, existing in enumerate(self.created):
            if existing.id == record.id:
                self.created[i] = record
                return
        self.created.append(record)

    def to_payload(self, include_trace: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "createdCount": self.created_count,
            "skippedCount": self.skipped_count,
            "errorCount": self.error_count,
            "ignoredCount": self.ignored_count,
            "created": [r.to_payload() for r in self.created],
            "skipped": list(self.skipped),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
        if include_trace:
            payload["imageStrategy"] = self.image_strategy
            payload["imageTrace"] = [t.to_payload() for t in self.trace]
        return payload
