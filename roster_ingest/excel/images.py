from __future__ import annotations

import io
import logging
import posixpath
import re
import xml.etree.ElementTree as ET
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from openpyxl.worksheet.worksheet import Worksheet
from PIL import Image, UnidentifiedImageError

from ..models.extracted_image import ExtractedImage, ImageSource

"""Embedded picture extraction for roster workbooks.

Three strategies, tried in order; the first one that yields at least one
readable image wins and nothing from a later strategy is mixed in:

1. drawing parts: workbook -> roster sheet (the worksheet openpyxl read,
   matched by title) -> sheet rels -> drawing part -> one/two-cell anchors
   -> blip embed -> media part (row/col known)
2. openpyxl worksheet image list (``ws._images``), same anchor semantics
3. ``xl/media/*`` parts in package order, unanchored, minus media that
   another sheet's drawings place

Unreadable or empty pictures are dropped with a warning.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ImageExtraction",
    "extract_images",
    "inspect_image_bytes",
    "images_from_drawings",
    "images_from_worksheet",
    "images_from_media",
]

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
    "xdr": "http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
}
R_ID = "{%s}id" % NS["r"]
R_EMBED = "{%s}embed" % NS["r"]

_CELL_REF = re.compile(r"^\$?([A-Za-z]{1,3})\$?([0-9]+)$")


@dataclass
class ImageExtraction:
    images: list[ExtractedImage] = field(default_factory=list)
    source: ImageSource | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _RawPicture:
    data: bytes
    row: int | None
    col: int | None
    part_name: str | None


@dataclass(frozen=True)
class _SheetPart:
    name: str
    part: str
    is_worksheet: bool


def inspect_image_bytes(data: bytes) -> str | None:
    """Return the Pillow format name of an image buffer, or None if unreadable."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def _relationships(archive: zipfile.ZipFile, rels_path: str) -> dict[str, tuple[str, str]]:
    """Relationship id -> (target, type) for one part."""
    rels: dict[str, tuple[str, str]] = {}
    if rels_path not in archive.namelist():
        return rels
    root = ET.fromstring(archive.read(rels_path))
    for rel in root.findall("rel:Relationship", NS):
        rel_id = rel.attrib.get("Id")
        target = rel.attrib.get("Target")
        if rel_id and target:
            rels[rel_id] = (target, rel.attrib.get("Type", ""))
    return rels


def _read_relationships(archive: zipfile.ZipFile, rels_path: str) -> dict[str, str]:
    return {rel_id: target for rel_id, (target, _) in _relationships(archive, rels_path).items()}


def _rels_path_for(part: str) -> str:
    return f"{posixpath.dirname(part)}/_rels/{posixpath.basename(part)}.rels"


def _resolve_part(base_part: str, target: str | None) -> str | None:
    if not target:
        return None
    clean = target.replace("\\", "/")
    if clean.startswith("/"):
        return clean.lstrip("/")
    return posixpath.normpath(posixpath.join(posixpath.dirname(base_part), clean))


def _sheet_parts(archive: zipfile.ZipFile) -> list[_SheetPart]:
    """Every ``<sheet>`` of the workbook, in tab order."""
    workbook_part = "xl/workbook.xml"
    if workbook_part not in archive.namelist():
        return []
    root = ET.fromstring(archive.read(workbook_part))
    rels = _relationships(archive, _rels_path_for(workbook_part))
    sheets: list[_SheetPart] = []
    for sheet in root.findall(".//main:sheets/main:sheet", NS):
        target, rel_type = rels.get(sheet.attrib.get(R_ID, ""), (None, ""))
        part = _resolve_part(workbook_part, target)
        if part:
            sheets.append(_SheetPart(sheet.attrib.get("name", ""), part, rel_type.endswith("/worksheet")))
    return sheets


def _roster_sheet(sheets: list[_SheetPart], sheet_name: str | None) -> _SheetPart | None:
    """The sheet the grid came from: by title, else the first worksheet.

    Chartsheets are skipped, as openpyxl leaves them out of ``wb.worksheets``.
    """
    if sheet_name is not None:
        for sheet in sheets:
            if sheet.name == sheet_name:
                return sheet
    return next((s for s in sheets if s.is_worksheet), None)


def _marker(anchor: ET.Element) -> tuple[int | None, int | None]:
    start = anchor.find("xdr:from", NS)
    if start is None:
        return None, None
    row_node = start.find("xdr:row", NS)
    col_node = start.find("xdr:col", NS)
    try:
        row = int(row_node.text) if row_node is not None and row_node.text else None
        col = int(col_node.text) if col_node is not None and col_node.text else None
    except ValueError:
        return None, None
    return row, col


def _drawing_refs(
    archive: zipfile.ZipFile, names: set[str], sheet_part: str
) -> list[tuple[int | None, int | None, str]]:
    """(row, col, media part) for every picture in one sheet's drawing parts."""
    refs: list[tuple[int | None, int | None, str]] = []
    if sheet_part not in names:
        return refs
    sheet_root = ET.fromstring(archive.read(sheet_part))
    sheet_rels = _read_relationships(archive, _rels_path_for(sheet_part))
    for drawing in sheet_root.findall(".//main:drawing", NS):
        drawing_part = _resolve_part(sheet_part, sheet_rels.get(drawing.attrib.get(R_ID, "")))
        if not drawing_part or drawing_part not in names:
            continue
        drawing_root = ET.fromstring(archive.read(drawing_part))
        drawing_rels = _read_relationships(archive, _rels_path_for(drawing_part))
        anchors = (
            drawing_root.findall("xdr:twoCellAnchor", NS)
            + drawing_root.findall("xdr:oneCellAnchor", NS)
            + drawing_root.findall("xdr:absoluteAnchor", NS)
        )
        for anchor in anchors:
            # absoluteAnchor has no cell marker; kept unanchored
            row, col = _marker(anchor)
            # grouped shapes can hold several pictures under one anchor
            for blip in anchor.iter("{%s}blip" % NS["a"]):
                media_part = _resolve_part(drawing_part, drawing_rels.get(blip.attrib.get(R_EMBED, "")))
                if media_part and media_part in names:
                    refs.append((row, col, media_part))
    return refs


def images_from_drawings(data: bytes, sheet_name: str | None = None) -> list[_RawPicture]:
    """Strategy 1: read anchors straight from the roster sheet's drawing parts."""
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        names = set(archive.namelist())
        sheet = _roster_sheet(_sheet_parts(archive), sheet_name)
        if sheet is None:
            return []
        return [
            _RawPicture(archive.read(media_part), row, col, media_part)
            for row, col, media_part in _drawing_refs(archive, names, sheet.part)
        ]


def _cell_ref_to_row_col(ref: str) -> tuple[int | None, int | None]:
    m = _CELL_REF.match(ref.strip())
    if not m:
        return None, None
    letters, digits = m.groups()
    col = 0
    for ch in letters.upper():
        col = col * 26 + (ord(ch) - ord("A") + 1)
    return int(digits) - 1, col - 1


def _openpyxl_anchor(img: Any) -> tuple[int | None, int | None]:
    anchor = getattr(img, "anchor", None)
    if anchor is None:
        return None, None
    if isinstance(anchor, str):
        return _cell_ref_to_row_col(anchor)
    start = getattr(anchor, "_from", None)
    if start is not None:
        row = getattr(start, "row", None)
        col = getattr(start, "col", None)
        if isinstance(row, int) and isinstance(col, int):
            return row, col
    return None, None


def images_from_worksheet(ws: Worksheet | None) -> list[_RawPicture]:
    """Strategy 2: openpyxl's own image list for the worksheet."""
    pictures: list[_RawPicture] = []
    if ws is None:
        return pictures
    for img in getattr(ws, "_images", None) or []:
        try:
            blob = img._data()
        except Exception as e:
            logger.warning(f"failed to read worksheet image: {e}")
            continue
        row, col = _openpyxl_anchor(img)
        pictures.append(_RawPicture(blob, row, col, getattr(img, "path", None)))
    return pictures


def images_from_media(data: bytes, sheet_name: str | None = None) -> list[_RawPicture]:
    """Strategy 3: bare media parts in package order, no anchors.

    Media that a drawing of any other sheet places is left out, so pictures
    from a second tab never end up on roster rows.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        names = set(archive.namelist())
        sheets = _sheet_parts(archive)
        roster = _roster_sheet(sheets, sheet_name)
        foreign = {
            media_part
            for sheet in sheets
            if roster is None or sheet.part != roster.part
            for _, _, media_part in _drawing_refs(archive, names, sheet.part)
        }
        return [
            _RawPicture(archive.read(info), None, None, info.filename)
            for info in archive.infolist()
            if info.filename.startswith("xl/media/") and not info.is_dir() and info.filename not in foreign
        ]


def _materialize(
    pictures: list[_RawPicture], source: ImageSource, warnings: list[str]
) -> list[ExtractedImage]:
    images: list[ExtractedImage] = []
    for raw in pictures:
        label = raw.part_name or f"{source.value} image"
        if not raw.data:
            warnings.append(f"Skipped empty image {label}")
            continue
        fmt = inspect_image_bytes(raw.data)
        if fmt is None:
            warnings.append(f"Skipped unreadable image {label}")
            continue
        images.append(
            ExtractedImage(
                data=raw.data,
                format=fmt,
                anchor_row=raw.row,
                anchor_column=raw.col,
                ordinal=len(images),
                source=source,
                part_name=raw.part_name,
            )
        )
    return images


def extract_images(data: bytes, ws: Worksheet | None = None) -> ImageExtraction:
    """Run the three strategies in priority order; first non-empty result wins."""
    result = ImageExtraction()
    sheet_name = ws.title if ws is not None else None
    strategies: list[tuple[ImageSource, Callable[[], list[_RawPicture]]]] = [
        (ImageSource.DRAWING, lambda: images_from_drawings(data, sheet_name)),
        (ImageSource.WORKSHEET, lambda: images_from_worksheet(ws)),
        (ImageSource.MEDIA, lambda: images_from_media(data, sheet_name)),
    ]
    for source, strategy in strategies:
        try:
            pictures = strategy()
        except (zipfile.BadZipFile, ET.ParseError, KeyError) as e:
            result.warnings.append(f"Image extraction ({source.value}) failed: {e}")
            continue
        if not pictures:
            continue
        warnings: list[str] = []
        images = _materialize(pictures, source, warnings)
        result.warnings.extend(warnings)
        if images:
            result.images = images
            result.source = source
            logger.debug(f"extracted {len(images)} image(s) via {source.value}")
            break
    return result
