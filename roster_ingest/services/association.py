from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..models.column_map import ColumnMap
from ..models.extracted_image import ExtractedImage
from ..models.grid import RawGrid
from ..models.match_trace import AssociationResult, MatchStrategy, MatchTrace

"""Image -> row association.

Anchored workbooks go through three passes, in order:

1. exact row: anchor row equals the grid row index (0-based DrawingML rows),
   anchor column within ``column_tolerance`` of the picture column; the first
   unused candidate in extraction order wins
2. near row: for rows still without a picture, the same test against the
   1-based reading of the anchor and the header-relative reading
3. column override: any anchored picture sitting exactly in the picture
   column on a data row replaces a looser match on that row

A workbook whose pictures carry no anchor at all falls back to positional
matching (n-th picture -> n-th data row). That result is flagged
``unverified``. Each picture is used at most once.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_COLUMN_TOLERANCE",
    "UNVERIFIED_WARNING",
    "associate_images",
]

DEFAULT_COLUMN_TOLERANCE = 2
UNVERIFIED_WARNING = (
    "Images unverified: the workbook has no picture anchors, photos were matched "
    "to rows by file order. Review associations."
)


class _Assigner:
    """Holds the per-call UsedImageSet and current assignments."""

    def __init__(self, result: AssociationResult) -> None:
        self.result = result
        self.used: set[int] = set()
        self.by_row: dict[int, ExtractedImage] = {}  # grid index -> image

    def assign(self, row_index: int, image: ExtractedImage, strategy: MatchStrategy, detail: str) -> None:
        self.used.add(image.ordinal)
        self.by_row[row_index] = image
        row_number = RawGrid.row_number(row_index)
        self.result.assignments[row_number] = image
        self.result.trace.append(MatchTrace(image.ordinal, row_number, strategy, detail))

    def release(self, row_index: int, reason: str) -> None:
        image = self.by_row.pop(row_index)
        self.used.discard(image.ordinal)
        row_number = RawGrid.row_number(row_index)
        self.result.assignments.pop(row_number, None)
        self.result.trace.append(MatchTrace(image.ordinal, row_number, MatchStrategy.DISPLACED, reason))

    def row_of(self, image: ExtractedImage) -> int | None:
        for row_index, assigned in self.by_row.items():
            if assigned.ordinal == image.ordinal:
                return row_index
        return None


def _column_distance(image: ExtractedImage, image_column: int | None) -> int | None:
    if image_column is None:
        return 0
    if image.anchor_column is None:
        return None
    return abs(image.anchor_column - image_column)


def _first_candidate(
    anchored: Sequence[ExtractedImage],
    used: set[int],
    target_rows: Iterable[int],
    image_column: int | None,
    tolerance: int,
) -> tuple[ExtractedImage, int, int] | None:
    for target in target_rows:
        for image in anchored:
            if image.ordinal in used or image.anchor_row != target:
                continue
            distance = _column_distance(image, image_column)
            if distance is None or distance > tolerance:
                continue
            return image, target, distance
    return None


def _ordered_fallback(
    assigner: _Assigner, eligible: Sequence[int], images: Sequence[ExtractedImage]
) -> None:
    pool = iter(sorted(images, key=lambda i: i.ordinal))
    for row_index in eligible:
        image = next(pool, None)
        if image is None:
            break
        assigner.assign(
            row_index, image, MatchStrategy.ORDERED_FALLBACK,
            "no anchor metadata; matched by file order",
        )


def associate_images(
    grid: RawGrid,
    columns: ColumnMap,
    images: Sequence[ExtractedImage],
    *,
    column_tolerance: int = DEFAULT_COLUMN_TOLERANCE,
) -> AssociationResult:
    """Assign each extracted picture to at most one data row.

    Returns an AssociationResult keyed by 1-based spreadsheet row number.
    Rows without a resolvable picture are simply absent from the mapping.
    """
    result = AssociationResult()
    if not images:
        return result

    assigner = _Assigner(result)
    eligible = [idx for idx, _ in grid.data_rows() if grid.row_has_content(idx)]
    eligible_set = set(eligible)
    image_column = columns.image_column
    anchored = sorted((i for i in images if i.is_anchored), key=lambda i: i.ordinal)

    if not anchored:
        _ordered_fallback(assigner, eligible, images)
        result.unverified = True
    else:
        # pass 1: exact row
        for row_index in eligible:
            found = _first_candidate(anchored, assigner.used, (row_index,), image_column, column_tolerance)
            if found is None:
                continue
            image, _, distance = found
            strategy = MatchStrategy.ANCHORED_EXACT if distance == 0 else MatchStrategy.ANCHORED_NEAR
            assigner.assign(row_index, image, strategy, f"anchor row {image.anchor_row}, column offset {distance}")

        # pass 2: 1-based anchor, then header-relative anchor
        for row_index in eligible:
            if row_index in assigner.by_row:
                continue
            found = _first_candidate(
                anchored, assigner.used, (row_index + 1, row_index - 1), image_column, column_tolerance
            )
            if found is None:
                continue
            image, target, distance = found
            assigner.assign(
                row_index, image, MatchStrategy.ANCHORED_NEAR,
                f"anchor row {target} read as row offset {target - row_index:+d}, column offset {distance}",
            )

        # pass 3: exact picture-column anchors win over looser matches
        if image_column is not None:
            for image in anchored:
                row_index = image.anchor_row
                if image.anchor_column != image_column or row_index is None or row_index < 1:
                    continue
                if row_index not in eligible_set:
                    continue
                current = assigner.by_row.get(row_index)
                if current is not None and current.ordinal == image.ordinal:
                    continue
                if (
                    current is not None
                    and current.anchor_row == row_index
                    and current.anchor_column == image_column
                ):
                    continue  # already an exact match; first one stays
                previous_row = assigner.row_of(image)
                if previous_row is not None:
                    assigner.release(previous_row, f"moved to row {RawGrid.row_number(row_index)} by column match")
                if current is not None:
                    assigner.release(row_index, f"replaced by image {image.ordinal} in picture column")
                assigner.assign(
                    row_index, image, MatchStrategy.COLUMN_OVERRIDE,
                    f"anchor in picture column {image_column}",
                )

    for image in images:
        if image.ordinal in assigner.used:
            continue
        if image.is_anchored:
            detail = f"anchor row {image.anchor_row} column {image.anchor_column} matched no free data row"
        elif anchored:
            detail = "no anchor while other pictures are anchored"
        else:
            detail = "more pictures than data rows"
        result.trace.append(MatchTrace(image.ordinal, None, MatchStrategy.UNMATCHED, detail))

    logger.debug(
        f"associated {len(result.assignments)}/{len(images)} image(s) "
        f"unverified={result.unverified}"
    )
    return result
