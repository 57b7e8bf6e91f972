from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "ColumnMap",
]


@dataclass(frozen=True)
class ColumnMap:
    """Zero-based column index per canonical roster field.

    ``name``, ``identifier`` and ``email`` always resolve; a ColumnMap is only
    built once the header row passed validation.
    """
    name: int
    identifier: int
    email: int
    phone: int | None = None
    image_column: int | None = None
