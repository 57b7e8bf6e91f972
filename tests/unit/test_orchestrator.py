from __future__ import annotations

import re
from pathlib import Path

import pytest

from roster_ingest.config.loader import IngestConfig
from roster_ingest.db.record_store import DuplicateRecordError, InMemoryRecordStore, RecordStoreError
from roster_ingest.excel.errors import FileTooLargeError, MissingColumnsError, WorkbookFormatError
from roster_ingest.logging.error_log import ErrorLogBuffer
from roster_ingest.services.credentials import CredentialPolicy
from roster_ingest.services.orchestrator import image_object_path, ingest_file, ingest_roster, prepare_roster
from roster_ingest.storage.blob_store import InMemoryBlobStore, UnconfiguredBlobStore
from workbooks import build_workbook, png_bytes, student


def _ingest(data: bytes, **kwargs):
    kwargs.setdefault("show_progress", False)
    records = kwargs.pop("record_store", None) or InMemoryRecordStore()
    blobs = kwargs.pop("blob_store", None) or InMemoryBlobStore()
    return ingest_roster(data, records, blobs, **kwargs), records, blobs


def test_image_object_path_sanitizes_identifier():
    path = image_object_path("avatars", "PS/LAB/22/0001", "abc", "png")
    assert re.fullmatch(r"avatars/PS_LAB_22_0001-abc-[0-9]{13}\.png", path)
    assert image_object_path("", "x y", "1", "jpg").startswith("x_y-1-")


def test_prepare_roster_splits_rows():
    data = build_workbook([student(1), ["", "PS/LAB/22/0002", None, "a@b.co"], [None] * 4, student(4, email="N/A")])
    prepared = prepare_roster(data)
    assert [r.identifier for r in prepared.accepted] == ["PS/LAB/22/0001"]
    assert [r.row_number for r in prepared.ignored] == [3, 4, 5]
    assert prepared.rejected == []
    assert prepared.data_row_count == 4


def test_happy_path_creates_records_and_uploads_pictures():
    data = build_workbook([student(1), student(2)], images=[("E2", png_bytes("red")), ("E3", png_bytes("blue"))])
    summary, records, blobs = _ingest(data)
    assert summary.created_count == 2
    assert summary.error_count == 0
    assert summary.images_extracted == 2
    assert summary.image_strategy == "drawing"
    assert len(blobs.objects) == 2
    stored = records.get_by_identifier("PS/LAB/22/0001")
    assert stored.profile_picture.startswith("memory://student-avatars/avatars/PS_LAB_22_0001-")
    assert summary.created[0].profile_picture == stored.profile_picture
    assert summary.elapsed_seconds >= 0


def test_random_credentials_are_issued_and_hashed():
    summary, records, _ = _ingest(build_workbook([student(1)]))
    assert len(summary.credentials) == 1
    cred = summary.credentials[0]
    assert cred.index_number == "PS/LAB/22/0001"
    record_id = records.get_by_identifier("PS/LAB/22/0001").id
    assert cred.password not in records.password_hashes[record_id]


def test_email_policy_issues_no_credentials():
    cfg = IngestConfig(credential_policy=CredentialPolicy.EMAIL)
    summary, _, _ = _ingest(build_workbook([student(1)]), config=cfg)
    assert summary.created_count == 1
    assert summary.credentials == []


def test_duplicate_inside_one_file_is_skipped():
    summary, _, _ = _ingest(build_workbook([student(1), student(1, name="Copy")]))
    assert summary.created_count == 1
    assert summary.skipped == ["Row 3: Student with index number PS/LAB/22/0001 already exists"]


def test_validation_errors_are_logged(tmp_path: Path):
    error_log = ErrorLogBuffer(tmp_path)
    data = build_workbook([student(1), ["Kofi", "PS/LAB/2/0001", None, "k@u.edu"]])
    summary, _, _ = _ingest(data, error_log=error_log, file_name="roster.xlsx")
    assert summary.errors == [
        "Row 3: Invalid index number format. Expected format: PS/LAB/YY/#### (e.g., PS/LAB/22/0001)"
    ]
    (rec,) = error_log.records
    assert (rec.file, rec.sheet, rec.row, rec.error_type) == ("roster.xlsx", "Students", 3, "INVALID_IDENTIFIER")


def test_record_store_failure_becomes_row_error():
    class FlakyStore(InMemoryRecordStore):
        def create(self, student):
            if student.index_number.endswith("0002"):
                raise RecordStoreError("connection reset")
            return super().create(student)

    summary, _, _ = _ingest(build_workbook([student(1), student(2), student(3)]), record_store=FlakyStore())
    assert summary.created_count == 2
    assert summary.errors == ["Row 3: PS/LAB/22/0002 - connection reset"]


def test_store_uniqueness_violation_on_create_is_a_skip():
    class RacingStore(InMemoryRecordStore):
        # another job inserts between the existence check and the insert
        def create(self, student):
            if student.index_number.endswith("0001"):
                raise DuplicateRecordError(
                    f"duplicate key value violates unique constraint: {student.index_number}"
                )
            return super().create(student)

    summary, _, _ = _ingest(build_workbook([student(1), student(2)]), record_store=RacingStore())
    assert summary.created_count == 1
    assert summary.errors == []
    assert summary.skipped == ["Row 2: Student with index number PS/LAB/22/0001 already exists"]
    assert summary.credentials[0].index_number == "PS/LAB/22/0002"


def test_errors_are_listed_in_row_order():
    # row 2 fails at upload time, row 3 already during validation
    data = build_workbook(
        [student(1), ["Kofi", "PS/LAB/2/0001", None, "k@u.edu"]],
        images=[("E2", png_bytes())],
    )
    summary, _, _ = _ingest(data, blob_store=UnconfiguredBlobStore())
    assert [e.split(":")[0] for e in summary.errors] == ["Row 2", "Row 3"]
    assert "Profile picture upload failed" in summary.errors[0]
    assert "Invalid index number format" in summary.errors[1]


def test_unconfigured_storage_keeps_record_without_picture():
    data = build_workbook([student(1)], images=[("E2", png_bytes())])
    summary, records, _ = _ingest(data, blob_store=UnconfiguredBlobStore())
    assert summary.created_count == 1
    assert records.get_by_identifier("PS/LAB/22/0001").profile_picture is None
    assert summary.errors == [
        "Row 2: PS/LAB/22/0001 - Profile picture upload failed: image storage is not configured "
        "(student created without picture)"
    ]


def test_file_too_large_is_structural(tmp_path: Path):
    error_log = ErrorLogBuffer(tmp_path)
    data = build_workbook([student(1)])
    with pytest.raises(FileTooLargeError):
        _ingest(data, config=IngestConfig(max_upload_bytes=10), error_log=error_log)
    (rec,) = error_log.records
    assert (rec.row, rec.error_type) == (-1, "STRUCTURAL")


def test_ingest_file_checks_size_before_reading(tmp_path: Path):
    path = tmp_path / "big.xlsx"
    path.write_bytes(b"x" * 64)
    with pytest.raises(FileTooLargeError):
        ingest_file(path, InMemoryRecordStore(), InMemoryBlobStore(), config=IngestConfig(max_upload_bytes=32))


def test_ingest_file_uses_file_name(tmp_path: Path):
    path = tmp_path / "roster.xlsx"
    path.write_bytes(build_workbook([["Ama", "bad-id", None, "a@u.edu"]]))
    error_log = ErrorLogBuffer(tmp_path / "logs")
    summary = ingest_file(path, InMemoryRecordStore(), InMemoryBlobStore(), error_log=error_log, show_progress=False)
    assert summary.error_count == 1
    assert error_log.records[0].file == "roster.xlsx"


def test_header_only_workbook_is_structural(tmp_path: Path):
    error_log = ErrorLogBuffer(tmp_path)
    records = InMemoryRecordStore()
    with pytest.raises(WorkbookFormatError, match="at least a header row and one data row"):
        _ingest(build_workbook([]), record_store=records, error_log=error_log)
    assert records.records == {}
    (rec,) = error_log.records
    assert (rec.row, rec.sheet, rec.error_type) == (-1, "<FILE_LEVEL>", "STRUCTURAL")


def test_missing_name_column():
    with pytest.raises(MissingColumnsError):
        _ingest(build_workbook([["x"]], header=["INDEX NO", "EMAIL"]))
