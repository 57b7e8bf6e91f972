from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""ExtractedImage model for pictures embedded in the roster workbook.

Anchor coordinates follow the DrawingML convention (0-based row / column of
the cell the picture's top-left corner sits over). ``None`` means the file
did not say where the picture was placed.
"""

__all__ = [
    "ImageSource",
    "ExtractedImage",
]

_CONTENT_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "WEBP": "image/webp",
    "TIFF": "image/tiff",
}

_EXTENSIONS = {
    "JPEG": "jpg",
    "TIFF": "tif",
}


class ImageSource(Enum):
    """Which extraction strategy produced an image.

    - DRAWING: worksheet drawing part (anchor table) read from the package
    - WORKSHEET: openpyxl's worksheet image list
    - MEDIA: bare media parts in package order, no anchor
    """
    DRAWING = "drawing"
    WORKSHEET = "worksheet"
    MEDIA = "media"


@dataclass(frozen=True)
class ExtractedImage:
    data: bytes = field(repr=False)
    format: str  # Pillow format name, e.g. PNG / JPEG
    anchor_row: int | None
    anchor_column: int | None
    ordinal: int  # extraction order within the workbook
    source: ImageSource
    part_name: str | None = None  # media part inside the package

    @property
    def is_anchored(self) -> bool:
        return self.anchor_row is not None

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES.get(self.format, f"image/{self.format.lower()}")

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self.format, self.format.lower())
