from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models.column_map import ColumnMap
from ..models.grid import CellValue, display_text
from .errors import MissingColumnsError

"""Header resolver: first grid row -> ColumnMap.

Labels compare case-insensitively after trimming and dropping one trailing
colon. Field labels match exactly; the picture column matches when the
label contains any synonym.
"""

__all__ = [
    "HeaderLabels",
    "normalize_header",
    "resolve_columns",
]


@dataclass(frozen=True)
class HeaderLabels:
    name: tuple[str, ...] = ("NAME",)
    identifier: tuple[str, ...] = ("INDEX NO",)
    phone: tuple[str, ...] = ("PHONE NO",)
    email: tuple[str, ...] = ("EMAIL",)
    image_synonyms: tuple[str, ...] = field(
        default=("PICTURE", "PHOTO", "PASSPORT", "IMAGE", "AVATAR")
    )


def normalize_header(cell: CellValue) -> str:
    text = display_text(cell)
    if text is None:
        return ""
    label = text.strip().upper()
    if label.endswith(":"):
        label = label[:-1].strip()
    return label


def _find(headers: list[str], accepted: Sequence[str]) -> int | None:
    wanted = {a.strip().upper() for a in accepted}
    for idx, label in enumerate(headers):
        if label and label in wanted:
            return idx
    return None


def resolve_columns(header_row: Sequence[CellValue], labels: HeaderLabels | None = None) -> ColumnMap:
    """Map header cells to canonical fields.

    Raises:
        MissingColumnsError: name, identifier or email column is absent; the
            error lists the canonical label of every missing column.
    """
    labels = labels or HeaderLabels()
    headers = [normalize_header(c) for c in header_row]

    name = _find(headers, labels.name)
    identifier = _find(headers, labels.identifier)
    email = _find(headers, labels.email)

    missing: list[str] = []
    if name is None:
        missing.append(labels.name[0])
    if identifier is None:
        missing.append(labels.identifier[0])
    if email is None:
        missing.append(labels.email[0])
    if missing:
        raise MissingColumnsError(missing)

    phone = _find(headers, labels.phone)
    claimed = {name, identifier, email, phone}
    synonyms = [s.strip().upper() for s in labels.image_synonyms]
    image_column = None
    for idx, label in enumerate(headers):
        if idx in claimed or not label:
            continue
        if any(s in label for s in synonyms):
            image_column = idx
            break

    assert name is not None and identifier is not None and email is not None
    return ColumnMap(
        name=name,
        identifier=identifier,
        email=email,
        phone=phone,
        image_column=image_column,
    )
