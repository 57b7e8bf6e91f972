from __future__ import annotations

import doctest

import pytest

from roster_ingest.models.column_map import ColumnMap
from roster_ingest.models.extracted_image import ExtractedImage, ImageSource
from roster_ingest.models.grid import RawGrid
from roster_ingest.services import normalizer
from roster_ingest.services.normalizer import (
    DEFAULT_IDENTIFIER_RULE,
    Accepted,
    IdentifierRule,
    Ignored,
    Rejected,
    is_valid_email,
    normalize_email,
    normalize_row,
)

COLUMNS = ColumnMap(name=0, identifier=1, email=3, phone=2)


def _decide(name, index, phone, email, image=None, rule=DEFAULT_IDENTIFIER_RULE):
    grid = RawGrid.from_values([["NAME", "INDEX NO", "PHONE NO", "EMAIL"], [name, index, phone, email]])
    return normalize_row(grid, 1, COLUMNS, image=image, identifier_rule=rule)


def test_doctests():
    assert doctest.testmod(normalizer).failed == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("jane@x.com", "jane@x.com"),
        ("1. jane@x.com", "jane@x.com"),
        ("(2) Jane.Doe@Uni.EDU", "jane.doe@uni.edu"),
        (": jane@x.com", "jane@x.com"),
        ("Email: jane@x.com", "jane@x.com"),
        ("jane @ x . com", "jane@x.com"),
        ("<jane@x.com>;", "jane@x.com"),
        ("o'brien@uni.edu", "o'brien@uni.edu"),
        ("Jöhn@Uni.edu", "jöhn@uni.edu"),
        ("1. mary.o'neil@uni.edu", "mary.o'neil@uni.edu"),
        ("first_last+tag@uni.edu", "first_last+tag@uni.edu"),
        ("Email: o'brien@uni.edu", "o'brien@uni.edu"),
        ("Email:Jöhn@uni.edu", "jöhn@uni.edu"),
    ],
)
def test_normalize_email_recovers_address(raw, expected):
    assert normalize_email(raw) == expected


# a fragment cut out of a longer local part must never pass for the address
@pytest.mark.parametrize(
    "raw",
    [None, "", "   ", "N/A", "jane@", "@x.com", "jane.x.com", "x:o’brien@uni.edu"],
)
def test_normalize_email_gives_up(raw):
    assert normalize_email(raw) is None


def test_is_valid_email():
    assert is_valid_email("a.b+c@sub.uni.edu")
    assert not is_valid_email("a@b")
    assert not is_valid_email("a b@c.com")


def test_accepted_row_is_normalized():
    image = ExtractedImage(b"x", "PNG", 1, 4, 0, ImageSource.DRAWING)
    decision = _decide("  Ama Mensah ", " PS/LAB/22/0001 ", 244123456, "1. Ama@Uni.edu", image=image)
    assert isinstance(decision, Accepted)
    row = decision.row
    assert row.source_row_number == 2
    assert row.name == "Ama Mensah"
    assert row.identifier == "PS/LAB/22/0001"
    assert row.email == "ama@uni.edu"
    assert row.phone == "244123456"
    assert row.image is image


def test_blank_name_cell_is_ignored():
    decision = _decide(None, "PS/LAB/22/0001", None, "a@b.co")
    assert isinstance(decision, Ignored)
    assert decision.row_number == 2


def test_whitespace_name_is_rejected():
    decision = _decide("   ", "PS/LAB/22/0001", None, "a@b.co")
    assert decision == Rejected(2, "Row 2: Missing NAME", "MISSING_NAME")


def test_missing_identifier_is_rejected():
    decision = _decide("Ama", None, None, "a@b.co")
    assert decision == Rejected(2, "Row 2: Missing INDEX NO", "MISSING_IDENTIFIER")


@pytest.mark.parametrize("index", ["PS/LAB/2/0001", "PSLAB220001", "ps/lab/22/1", "ps/lab/22/0001", "PS/LAB/22/00011", "XPS/LAB/22/0001"])
def test_invalid_identifier_is_rejected(index):
    decision = _decide("Ama", index, None, "a@b.co")
    assert isinstance(decision, Rejected)
    assert decision.error_type == "INVALID_IDENTIFIER"
    assert decision.reason == (
        "Row 2: Invalid index number format. Expected format: PS/LAB/YY/#### (e.g., PS/LAB/22/0001)"
    )


def test_identifier_checked_before_email():
    decision = _decide("Ama", "bad", None, None)
    assert isinstance(decision, Rejected)


@pytest.mark.parametrize("email", [None, "none", "ask registry"])
def test_unusable_email_is_ignored(email):
    assert isinstance(_decide("Ama", "PS/LAB/22/0001", None, email), Ignored)


def test_custom_identifier_rule():
    rule = IdentifierRule.compile(r"[0-9]{8}", "########", "20240001")
    assert isinstance(_decide("Ama", "20240001", None, "a@b.co", rule=rule), Accepted)
    rejected = _decide("Ama", "2024001", None, "a@b.co", rule=rule)
    assert rejected.reason.endswith("Expected format: ######## (e.g., 20240001)")
