from __future__ import annotations

from ..models.outcome import IngestionSummary

"""SUMMARY line rendering.

Format:
SUMMARY rows={rows} created={created} skipped={skipped} errors={errors}
ignored={ignored} images={images} elapsed_sec={elapsed}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(summary: IngestionSummary) -> str:
    """Render the one-line SUMMARY for an ingestion run.

    >>> s = IngestionSummary(total_rows=3, ignored_count=1, elapsed_seconds=2.0)
    >>> render_summary_line(s)
    'SUMMARY rows=3 created=0 skipped=0 errors=0 ignored=1 images=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY rows={summary.total_rows} "
        f"created={summary.created_count} "
        f"skipped={summary.skipped_count} "
        f"errors={summary.error_count} "
        f"ignored={summary.ignored_count} "
        f"images={summary.images_extracted} "
        f"elapsed_sec={_format_seconds(summary.elapsed_seconds)}"
    )
