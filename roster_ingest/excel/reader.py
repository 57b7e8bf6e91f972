from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
from openpyxl import load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from ..models.extracted_image import ExtractedImage, ImageSource
from ..models.grid import RawGrid, coerce_cell
from .errors import WorkbookFormatError
from .images import extract_images

"""Workbook model loader.

Grid reading is a two-step chain:
1. openpyxl (first worksheet, cached formula values) - also the only path
   that yields a worksheet object for image extraction
2. pandas ``read_excel`` for encodings openpyxl cannot open (``.xls`` /
   ``.ods`` when the matching engine is installed); no images in that case

Only the first sheet is read.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "WorkbookModel",
    "read_workbook",
    "read_grid_openpyxl",
    "read_grid_pandas",
]


@dataclass
class WorkbookModel:
    grid: RawGrid
    sheet_name: str
    engine: str  # "openpyxl" | "pandas"
    images: list[ExtractedImage] = field(default_factory=list)
    image_source: ImageSource | None = None
    warnings: list[str] = field(default_factory=list)


def read_grid_openpyxl(data: bytes) -> tuple[RawGrid, str, Worksheet]:
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True)
    except Exception as e:
        raise WorkbookFormatError(f"openpyxl could not open workbook: {e}") from e
    if not wb.worksheets:
        raise WorkbookFormatError("Excel file has no sheets")
    ws = wb.worksheets[0]
    rows = [[coerce_cell(v) for v in row] for row in ws.iter_rows(values_only=True)]
    return RawGrid(rows), ws.title, ws


def read_grid_pandas(data: bytes) -> tuple[RawGrid, str]:
    try:
        xls = pd.ExcelFile(io.BytesIO(data))
    except Exception as e:
        raise WorkbookFormatError(f"pandas could not open workbook: {e}") from e
    if not xls.sheet_names:
        raise WorkbookFormatError("Excel file has no sheets")
    name = str(xls.sheet_names[0])
    # keep_default_na=False: "NA" / "N/A" stay text so the row rules see them
    df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    rows: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        rows.append([None if pd.isna(v) else v for v in raw])
    return RawGrid.from_values(rows), name


def read_workbook(data: bytes, *, with_images: bool = True) -> WorkbookModel:
    """Parse uploaded bytes into a WorkbookModel.

    Raises:
        WorkbookFormatError: neither reader could open the buffer, or it has
            no sheets.
    """
    if not data:
        raise WorkbookFormatError("Uploaded file is empty")

    try:
        grid, sheet_name, ws = read_grid_openpyxl(data)
    except WorkbookFormatError as primary:
        logger.debug(f"openpyxl failed, trying pandas fallback: {primary}")
        try:
            grid, sheet_name = read_grid_pandas(data)
        except WorkbookFormatError as fallback:
            if "no sheets" in str(primary):
                raise primary
            raise WorkbookFormatError(f"Failed to parse Excel file: {primary}; {fallback}") from fallback
        model = WorkbookModel(grid=grid, sheet_name=sheet_name, engine="pandas")
        if with_images:
            model.warnings.append(
                "Embedded images are only read from .xlsx workbooks; pictures in this file were ignored"
            )
        return model

    model = WorkbookModel(grid=grid, sheet_name=sheet_name, engine="openpyxl")
    if with_images:
        extraction = extract_images(data, ws)
        model.images = extraction.images
        model.image_source = extraction.source
        model.warnings.extend(extraction.warnings)
    logger.debug(
        f"workbook loaded sheet={sheet_name} rows={len(grid)} cols={grid.width} "
        f"images={len(model.images)} source={model.image_source.value if model.image_source else None}"
    )
    return model
