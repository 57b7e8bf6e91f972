from __future__ import annotations

import datetime as _dt
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

"""RawGrid model: the first worksheet as rows x columns of typed cells.

Every cell is exactly one of Text / Number / Blank. Values coming out of
openpyxl or pandas are coerced once, in ``coerce_cell``; nothing downstream
sees a raw library value.
"""

__all__ = [
    "Text",
    "Number",
    "Blank",
    "BLANK",
    "CellValue",
    "RawGrid",
    "coerce_cell",
    "display_text",
]


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Number:
    value: int | float

    @property
    def text(self) -> str:
        v = self.value
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return str(v)


class Blank:
    """Explicit empty-cell marker (singleton)."""

    _instance: Blank | None = None

    def __new__(cls) -> Blank:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return "BLANK"

    def __bool__(self) -> bool:
        return False


BLANK = Blank()

CellValue = Union[Text, Number, Blank]


def coerce_cell(value: Any) -> CellValue:
    """Coerce a raw spreadsheet value to its display form."""
    if value is None:
        return BLANK
    if isinstance(value, bool):
        return Text("TRUE" if value else "FALSE")
    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and value != value:  # NaN from pandas
            return BLANK
        if isinstance(value, Decimal):
            value = float(value)
        return Number(value)
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return Text(value.isoformat())
    text = str(value)
    if text == "":
        return BLANK
    return Text(text)


def display_text(cell: CellValue) -> str | None:
    """Return the display text of a cell, or None for a blank cell."""
    if isinstance(cell, Text):
        return cell.value
    if isinstance(cell, Number):
        return cell.text
    return None


class RawGrid:
    """Rectangular grid; row 0 is the header row.

    Rows are padded with BLANK to the widest observed row.
    """

    def __init__(self, rows: Sequence[Sequence[CellValue]]) -> None:
        width = max((len(r) for r in rows), default=0)
        self._rows: tuple[tuple[CellValue, ...], ...] = tuple(
            tuple(r) + (BLANK,) * (width - len(r)) for r in rows
        )
        self.width = width

    @classmethod
    def from_values(cls, rows: Sequence[Sequence[Any]]) -> RawGrid:
        return cls([[coerce_cell(v) for v in row] for row in rows])

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, index: int) -> tuple[CellValue, ...]:
        return self._rows[index]

    @property
    def header(self) -> tuple[CellValue, ...]:
        if not self._rows:
            return ()
        return self._rows[0]

    def cell(self, row_index: int, col_index: int | None) -> CellValue:
        if col_index is None or row_index >= len(self._rows) or col_index >= self.width:
            return BLANK
        return self._rows[row_index][col_index]

    def row_has_content(self, row_index: int) -> bool:
        return any(not isinstance(c, Blank) for c in self._rows[row_index])

    def data_rows(self) -> Iterator[tuple[int, tuple[CellValue, ...]]]:
        """Yield (grid index, cells) for every row after the header."""
        for idx in range(1, len(self._rows)):
            yield idx, self._rows[idx]

    @staticmethod
    def row_number(row_index: int) -> int:
        """1-based spreadsheet row number (header is row 1)."""
        return row_index + 1
