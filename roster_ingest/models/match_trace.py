from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .extracted_image import ExtractedImage

"""Structured trace of image-to-row association decisions.

One MatchTrace per decision, so callers (and tests) can see which strategy
placed which picture without scraping log output.
"""

__all__ = [
    "MatchStrategy",
    "MatchTrace",
    "AssociationResult",
]


class MatchStrategy(Enum):
    ANCHORED_EXACT = "anchored_exact"
    ANCHORED_NEAR = "anchored_near"
    COLUMN_OVERRIDE = "column_override"
    ORDERED_FALLBACK = "ordered_fallback"
    DISPLACED = "displaced"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class MatchTrace:
    image_ordinal: int
    row_number: int | None  # 1-based spreadsheet row, None when unmatched
    strategy: MatchStrategy
    detail: str = ""

    def to_payload(self) -> dict[str, object]:
        return {
            "image": self.image_ordinal,
            "row": self.row_number,
            "strategy": self.strategy.value,
            "detail": self.detail,
        }


@dataclass
class AssociationResult:
    assignments: dict[int, ExtractedImage] = field(default_factory=dict)  # row number -> image
    trace: list[MatchTrace] = field(default_factory=list)
    unverified: bool = False  # ordered fallback was used

    def image_for_row(self, row_number: int) -> ExtractedImage | None:
        return self.assignments.get(row_number)

    def strategy_for_row(self, row_number: int) -> MatchStrategy | None:
        """Strategy of the last trace entry that placed an image on this row."""
        for entry in reversed(self.trace):
            if entry.row_number == row_number and entry.strategy not in (
                MatchStrategy.DISPLACED,
                MatchStrategy.UNMATCHED,
            ):
                image = self.assignments.get(row_number)
                if image is not None and image.ordinal == entry.image_ordinal:
                    return entry.strategy
        return None
