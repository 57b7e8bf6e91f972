from __future__ import annotations

from roster_ingest.models.column_map import ColumnMap
from roster_ingest.models.extracted_image import ExtractedImage, ImageSource
from roster_ingest.models.grid import RawGrid
from roster_ingest.models.match_trace import MatchStrategy
from roster_ingest.services.association import associate_images

COLUMNS = ColumnMap(name=0, identifier=1, email=2, phone=None, image_column=3)


def _grid(n_rows: int, blank_rows: tuple[int, ...] = ()) -> RawGrid:
    rows = [["NAME", "INDEX NO", "EMAIL", "PICTURE"]]
    for i in range(1, n_rows + 1):
        if i in blank_rows:
            rows.append([None, None, None, None])
        else:
            rows.append([f"S{i}", f"PS/LAB/22/{i:04d}", f"s{i}@uni.edu", None])
    return RawGrid.from_values(rows)


def _img(ordinal: int, row: int | None, col: int | None, source: ImageSource = ImageSource.DRAWING) -> ExtractedImage:
    return ExtractedImage(
        data=bytes([ordinal]),
        format="PNG",
        anchor_row=row,
        anchor_column=col,
        ordinal=ordinal,
        source=source,
    )


def test_exact_row_match():
    images = [_img(0, 2, 3), _img(1, 1, 3)]
    result = associate_images(_grid(2), COLUMNS, images)
    assert result.image_for_row(2).ordinal == 1
    assert result.image_for_row(3).ordinal == 0
    assert result.strategy_for_row(2) is MatchStrategy.ANCHORED_EXACT
    assert not result.unverified


def test_no_images_gives_empty_result():
    result = associate_images(_grid(2), COLUMNS, [])
    assert result.assignments == {}
    assert result.trace == []


def test_column_tolerance():
    images = [_img(0, 1, 5), _img(1, 2, 8)]
    result = associate_images(_grid(2), COLUMNS, images, column_tolerance=2)
    assert result.image_for_row(2).ordinal == 0
    assert result.image_for_row(3) is None
    unmatched = [t for t in result.trace if t.strategy is MatchStrategy.UNMATCHED]
    assert [t.image_ordinal for t in unmatched] == [1]


def test_near_row_reads_one_based_anchor():
    # anchor row 3 only exists as a one-based reading of the last data row
    result = associate_images(_grid(2), COLUMNS, [_img(0, 3, 3)])
    assert result.image_for_row(3).ordinal == 0
    assert result.strategy_for_row(3) is MatchStrategy.ANCHORED_NEAR


def test_near_row_reads_header_relative_anchor():
    result = associate_images(_grid(1), COLUMNS, [_img(0, 0, 3)])
    assert result.image_for_row(2).ordinal == 0
    assert result.strategy_for_row(2) is MatchStrategy.ANCHORED_NEAR


def test_column_override_replaces_looser_match():
    images = [_img(0, 1, 2), _img(1, 1, 3)]
    result = associate_images(_grid(1), COLUMNS, images)
    assert result.image_for_row(2).ordinal == 1
    assert result.strategy_for_row(2) is MatchStrategy.COLUMN_OVERRIDE
    strategies = [(t.image_ordinal, t.strategy) for t in result.trace]
    assert (0, MatchStrategy.DISPLACED) in strategies
    assert (0, MatchStrategy.UNMATCHED) in strategies


def test_each_image_used_at_most_once():
    result = associate_images(_grid(3), COLUMNS, [_img(0, 2, 3)])
    assert len(result.assignments) == 1
    assert result.image_for_row(3).ordinal == 0


def test_blank_rows_never_receive_images():
    result = associate_images(_grid(2, blank_rows=(1,)), COLUMNS, [_img(0, 1, 3)])
    assert result.image_for_row(2) is None
    # next pass picks the neighbouring data row instead
    assert result.image_for_row(3).ordinal == 0


def test_ordered_fallback_for_unanchored_pictures():
    images = [_img(0, None, None, ImageSource.MEDIA), _img(1, None, None, ImageSource.MEDIA)]
    result = associate_images(_grid(3, blank_rows=(2,)), COLUMNS, images)
    assert result.unverified
    assert result.image_for_row(2).ordinal == 0
    assert result.image_for_row(3) is None
    assert result.image_for_row(4).ordinal == 1
    assert result.strategy_for_row(4) is MatchStrategy.ORDERED_FALLBACK


def test_ordered_fallback_with_more_pictures_than_rows():
    images = [_img(i, None, None, ImageSource.MEDIA) for i in range(3)]
    result = associate_images(_grid(1), COLUMNS, images)
    assert len(result.assignments) == 1
    assert sum(t.strategy is MatchStrategy.UNMATCHED for t in result.trace) == 2


def test_without_picture_column_any_column_matches():
    columns = ColumnMap(name=0, identifier=1, email=2)
    result = associate_images(_grid(1), columns, [_img(0, 1, 12)])
    assert result.image_for_row(2).ordinal == 0


def test_unanchored_image_alongside_anchored_is_unmatched():
    images = [_img(0, 1, 3), _img(1, None, None)]
    result = associate_images(_grid(2), COLUMNS, images)
    assert result.image_for_row(3) is None
    assert not result.unverified
