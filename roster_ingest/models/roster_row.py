from __future__ import annotations

from dataclasses import dataclass

from .extracted_image import ExtractedImage

__all__ = [
    "RosterRow",
]


@dataclass(frozen=True)
class RosterRow:
    """One accepted spreadsheet row, ready to become a student record."""
    source_row_number: int  # 1-based, header is row 1
    name: str
    identifier: str
    email: str
    phone: str | None = None
    image: ExtractedImage | None = None
