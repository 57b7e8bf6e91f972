from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from ..models.column_map import ColumnMap
from ..models.extracted_image import ExtractedImage
from ..models.grid import Blank, CellValue, RawGrid, display_text
from ..models.roster_row import RosterRow

"""Row normalizer / validator.

Rules run in a fixed order per data row:

1. no value in the name column        -> silent skip (blank / trailing row)
2. name empty after trimming          -> error MISSING_NAME
3. identifier empty                   -> error MISSING_IDENTIFIER
4. identifier does not match pattern  -> error INVALID_IDENTIFIER
5. email cell empty                   -> silent skip
6. nothing email-shaped in the cell   -> silent skip
7. phone passed through as-is
8. accepted, paired with its associated picture
"""

__all__ = [
    "IdentifierRule",
    "Accepted",
    "Ignored",
    "Rejected",
    "RowDecision",
    "is_valid_email",
    "normalize_email",
    "normalize_row",
]

# strict shape used for acceptance; local part is RFC 5322 atext (\w covers
# non-ASCII letters) plus dots
_STANDARD_EMAIL = re.compile(r"^[\w.!#$%&'*+/=?^`{|}~-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")
# permissive shape used to dig an address out of surrounding noise
_EMBEDDED_EMAIL = re.compile(r"[\w.%+'-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_ENUMERATION_PREFIX = re.compile(r"^\s*\(?[0-9]+[.)]\s+")
_WHITESPACE = re.compile(r"\s+")
_LOCAL_CHARS = re.compile(r"[\w.%+'-]")
_DOMAIN_CHARS = re.compile(r"[A-Za-z0-9._%-]")
_TLD_CHARS = re.compile(r"[A-Za-z]")


@dataclass(frozen=True)
class IdentifierRule:
    """Single anchored pattern for student identifiers.

    ``pattern`` is applied with full-match semantics; ``format`` and
    ``example`` only feed the error message.
    """
    pattern: re.Pattern[str]
    format: str
    example: str

    @classmethod
    def compile(cls, pattern: str, format: str, example: str) -> IdentifierRule:
        return cls(re.compile(pattern), format, example)

    def matches(self, value: str) -> bool:
        return self.pattern.fullmatch(value) is not None

    @property
    def message(self) -> str:
        return f"Invalid index number format. Expected format: {self.format} (e.g., {self.example})"


DEFAULT_IDENTIFIER_RULE = IdentifierRule.compile(r"^PS/LAB/[0-9]{2}/[0-9]{4}$", "PS/LAB/YY/####", "PS/LAB/22/0001")


@dataclass(frozen=True)
class Accepted:
    row: RosterRow


@dataclass(frozen=True)
class Ignored:
    row_number: int
    reason: str


@dataclass(frozen=True)
class Rejected:
    row_number: int
    reason: str
    error_type: str


RowDecision = Union[Accepted, Ignored, Rejected]


def is_valid_email(value: str) -> bool:
    return _STANDARD_EMAIL.match(value) is not None


def _cut_short(text: str, start: int) -> bool:
    """True when ``text[start:]`` begins mid-token, e.g. after the o' of o'brien."""
    if start == 0:
        return False
    before = text[start - 1]
    return before.isalnum() or before == "'" or not before.isascii()


def _expand_around_at(text: str) -> str | None:
    at = text.find("@")
    if at <= 0 or at >= len(text) - 1:
        return None
    start = at - 1
    while start >= 0 and _LOCAL_CHARS.match(text[start]):
        start -= 1
    start += 1
    if _cut_short(text, start):
        return None
    end = at + 1
    while end < len(text) and _DOMAIN_CHARS.match(text[end]):
        end += 1
    if end < len(text) and text[end] == ".":
        end += 1
        while end < len(text) and _TLD_CHARS.match(text[end]):
            end += 1
    return text[start:end]


def normalize_email(value: str | None) -> str | None:
    """Pull a usable address out of a hand-typed email cell.

    >>> normalize_email("1. Jane@X.com")
    'jane@x.com'
    >>> normalize_email(": jane@x.com")
    'jane@x.com'
    >>> normalize_email("o'brien@uni.edu")
    "o'brien@uni.edu"
    >>> normalize_email("N/A") is None
    True
    """
    if not value:
        return None
    cleaned = _WHITESPACE.sub("", _ENUMERATION_PREFIX.sub("", value))
    if not cleaned:
        return None

    if is_valid_email(cleaned):
        return cleaned.lower()

    match = _EMBEDDED_EMAIL.search(cleaned)
    if match and not _cut_short(cleaned, match.start()) and is_valid_email(match.group(0)):
        return match.group(0).lower()

    candidate = _expand_around_at(cleaned)
    if candidate and is_valid_email(candidate):
        return candidate.lower()
    return None


def _text(cell: CellValue) -> str:
    text = display_text(cell)
    return text.strip() if text is not None else ""


def normalize_row(
    grid: RawGrid,
    row_index: int,
    columns: ColumnMap,
    image: ExtractedImage | None = None,
    identifier_rule: IdentifierRule = DEFAULT_IDENTIFIER_RULE,
) -> RowDecision:
    row_number = RawGrid.row_number(row_index)

    name_cell = grid.cell(row_index, columns.name)
    if isinstance(name_cell, Blank):
        return Ignored(row_number, "no name")

    name = _text(name_cell)
    if not name:
        return Rejected(row_number, f"Row {row_number}: Missing NAME", "MISSING_NAME")

    identifier = _text(grid.cell(row_index, columns.identifier))
    if not identifier:
        return Rejected(row_number, f"Row {row_number}: Missing INDEX NO", "MISSING_IDENTIFIER")
    if not identifier_rule.matches(identifier):
        return Rejected(row_number, f"Row {row_number}: {identifier_rule.message}", "INVALID_IDENTIFIER")

    raw_email = _text(grid.cell(row_index, columns.email))
    if not raw_email:
        return Ignored(row_number, "no email")
    email = normalize_email(raw_email)
    if email is None:
        return Ignored(row_number, f"no usable email in {raw_email!r}")

    phone = _text(grid.cell(row_index, columns.phone)) or None

    return Accepted(
        RosterRow(
            source_row_number=row_number,
            name=name,
            identifier=identifier,
            email=email,
            phone=phone,
            image=image,
        )
    )
