from __future__ import annotations

import json
from pathlib import Path

from roster_ingest.db.record_store import InMemoryRecordStore
from roster_ingest.logging.error_log import ErrorLogBuffer
from roster_ingest.services.orchestrator import ingest_roster
from roster_ingest.storage.blob_store import UnconfiguredBlobStore
from workbooks import build_workbook, png_bytes, student

"""Error log JSON Lines contract: one object per failed row, fixed keys."""

KEYS = {"timestamp", "file", "sheet", "row", "error_type", "message"}
ERROR_TYPES = {
    "MISSING_NAME",
    "MISSING_IDENTIFIER",
    "INVALID_IDENTIFIER",
    "RECORD_CREATE_FAILED",
    "IMAGE_UPLOAD_FAILED",
    "STRUCTURAL",
}


def test_error_log_lines(tmp_path: Path):
    rows = [
        student(1),
        ["  ", "PS/LAB/22/0002", None, "a@u.edu"],
        ["Kofi", None, None, "k@u.edu"],
        ["Esi", "PS-LAB-22-0004", None, "e@u.edu"],
    ]
    data = build_workbook(rows, images=[("E2", png_bytes())])
    buf = ErrorLogBuffer(tmp_path)
    summary = ingest_roster(
        data, InMemoryRecordStore(), UnconfiguredBlobStore(), file_name="roster.xlsx", error_log=buf, show_progress=False
    )
    path = buf.flush()
    entries = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(entries) == summary.error_count == 4
    for entry in entries:
        assert set(entry) == KEYS
        assert entry["error_type"] in ERROR_TYPES
        assert entry["file"] == "roster.xlsx"
    assert [(e["row"], e["error_type"]) for e in entries] == [
        (3, "MISSING_NAME"),
        (4, "MISSING_IDENTIFIER"),
        (5, "INVALID_IDENTIFIER"),
        (2, "IMAGE_UPLOAD_FAILED"),
    ]
    assert [e["message"] for e in entries] == summary.errors
