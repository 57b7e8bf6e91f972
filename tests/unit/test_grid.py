from __future__ import annotations

import datetime as dt
from decimal import Decimal

from roster_ingest.models.grid import BLANK, Blank, Number, RawGrid, Text, coerce_cell, display_text


def test_coerce_cell_variants():
    assert coerce_cell(None) is BLANK
    assert coerce_cell("") is BLANK
    assert coerce_cell(float("nan")) is BLANK
    assert coerce_cell("Ama") == Text("Ama")
    assert coerce_cell(True) == Text("TRUE")
    assert coerce_cell(42) == Number(42)
    assert coerce_cell(Decimal("1.5")) == Number(1.5)
    assert coerce_cell(dt.date(2024, 1, 2)) == Text("2024-01-02")


def test_number_text_drops_integral_fraction():
    assert Number(244123456.0).text == "244123456"
    assert Number(1.25).text == "1.25"
    assert display_text(Number(7)) == "7"
    assert display_text(BLANK) is None
    assert display_text(Text(" x ")) == " x "


def test_blank_is_singleton_and_falsy():
    assert Blank() is BLANK
    assert not BLANK


def test_grid_pads_rows_and_numbers_them():
    grid = RawGrid.from_values([["NAME", "EMAIL"], ["Ama"], [None, None]])
    assert grid.width == 2
    assert grid[1] == (Text("Ama"), BLANK)
    assert grid.cell(1, 5) is BLANK
    assert grid.cell(1, None) is BLANK
    assert [idx for idx, _ in grid.data_rows()] == [1, 2]
    assert grid.row_has_content(1)
    assert not grid.row_has_content(2)
    assert RawGrid.row_number(1) == 2


def test_empty_grid_has_no_header():
    grid = RawGrid([])
    assert len(grid) == 0
    assert grid.header == ()
    assert list(grid.data_rows()) == []
