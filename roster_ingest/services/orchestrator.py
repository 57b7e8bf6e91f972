from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path

from ..config.loader import IngestConfig
from ..db.record_store import DuplicateRecordError, RecordStore, RecordStoreError
from ..excel.errors import FileTooLargeError, IngestionError, WorkbookFormatError
from ..excel.headers import resolve_columns
from ..excel.reader import WorkbookModel, read_workbook
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.column_map import ColumnMap
from ..models.match_trace import AssociationResult
from ..models.outcome import Created, Failed, IngestionSummary, IssuedCredential, Skipped
from ..models.roster_row import RosterRow
from ..models.student import NewStudent, StudentRecord
from ..storage.blob_store import BlobStore, BlobStoreError, BlobStoreNotConfiguredError
from .association import UNVERIFIED_WARNING, associate_images
from .credentials import CredentialPolicy, initial_password
from .normalizer import Accepted, Ignored, Rejected, normalize_row
from .progress import RowProgressTracker

"""Ingestion orchestration: uploaded bytes -> IngestionSummary.

Stages:
1. size cap, workbook load, header resolution, image association, row
   normalization (structural problems raise IngestionError here, before any
   record exists)
2. accepted rows, strictly one after another: duplicate check, create,
   best-effort picture upload
3. ledger aggregation

Row-level problems never raise; they become ledger entries.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PreparedRoster",
    "check_upload_size",
    "prepare_roster",
    "ingest_roster",
    "ingest_file",
    "image_object_path",
]

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9.-]")


@dataclass
class PreparedRoster:
    workbook: WorkbookModel
    columns: ColumnMap
    association: AssociationResult
    accepted: list[RosterRow] = field(default_factory=list)
    rejected: list[Rejected] = field(default_factory=list)
    ignored: list[Ignored] = field(default_factory=list)

    @property
    def data_row_count(self) -> int:
        return max(len(self.workbook.grid) - 1, 0)


def check_upload_size(data: bytes, max_bytes: int) -> None:
    if len(data) > max_bytes:
        raise FileTooLargeError(len(data), max_bytes)


def prepare_roster(data: bytes, config: IngestConfig | None = None) -> PreparedRoster:
    """Run loader, header resolver, associator and row normalizer.

    Raises:
        FileTooLargeError, WorkbookFormatError (also for a sheet with no data
        row under the header), MissingColumnsError
    """
    cfg = config or IngestConfig()
    check_upload_size(data, cfg.max_upload_bytes)

    workbook = read_workbook(data)
    if len(workbook.grid) < 2:
        raise WorkbookFormatError("Excel file must have at least a header row and one data row")
    columns = resolve_columns(workbook.grid.header, cfg.header_labels)
    association = associate_images(
        workbook.grid, columns, workbook.images, column_tolerance=cfg.column_tolerance
    )

    prepared = PreparedRoster(workbook=workbook, columns=columns, association=association)
    grid = workbook.grid
    for row_index, _ in grid.data_rows():
        row_number = grid.row_number(row_index)
        decision = normalize_row(
            grid,
            row_index,
            columns,
            image=association.image_for_row(row_number),
            identifier_rule=cfg.identifier_rule,
        )
        if isinstance(decision, Accepted):
            prepared.accepted.append(decision.row)
        elif isinstance(decision, Rejected):
            prepared.rejected.append(decision)
        else:
            logger.debug(f"Row {decision.row_number}: ignored ({decision.reason})")
            prepared.ignored.append(decision)
    return prepared


def image_object_path(prefix: str, index_number: str, record_id: str, extension: str) -> str:
    sanitized = _UNSAFE_PATH_CHARS.sub("_", index_number)
    stamp = int(time.time() * 1000)
    name = f"{sanitized}-{record_id}-{stamp}.{extension}"
    return f"{prefix.strip('/')}/{name}" if prefix.strip("/") else name


class _Run:
    """Mutable state of one ingestion call."""

    def __init__(
        self,
        summary: IngestionSummary,
        record_store: RecordStore,
        blob_store: BlobStore,
        config: IngestConfig,
        file_name: str,
        sheet_name: str,
        error_log: ErrorLogBuffer | None,
    ) -> None:
        self.summary = summary
        self.record_store = record_store
        self.blob_store = blob_store
        self.config = config
        self.file_name = file_name
        self.sheet_name = sheet_name
        self.error_log = error_log

    def fail(self, row_number: int, reason: str, error_type: str) -> None:
        self.summary.record(Failed(row_number, reason, error_type))
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(self.file_name, self.sheet_name, row_number, error_type, reason)
            )

    def skip_duplicate(self, row: RosterRow) -> None:
        n = row.source_row_number
        reason = f"Row {n}: Student with index number {row.identifier} already exists"
        logger.debug(reason)
        self.summary.record(Skipped(n, reason))

    def import_row(self, row: RosterRow) -> None:
        n = row.source_row_number
        try:
            if self.record_store.exists_by_identifier(row.identifier):
                self.skip_duplicate(row)
                return
            password = initial_password(row, self.config.credential_policy)
            record = self.record_store.create(
                NewStudent(
                    index_number=row.identifier,
                    full_name=row.name,
                    email=row.email,
                    phone_number=row.phone,
                    password=password,
                )
            )
        except DuplicateRecordError:
            # another job inserted the identifier after the existence check
            self.skip_duplicate(row)
            return
        except RecordStoreError as e:
            self.fail(n, f"Row {n}: {row.identifier} - {e}", "RECORD_CREATE_FAILED")
            return
        except Exception as e:
            logger.exception(f"Row {n}: unexpected record store failure")
            self.fail(n, f"Row {n}: {row.identifier} - {e}", "RECORD_CREATE_FAILED")
            return

        self.summary.record(Created(n, record))
        if self.config.credential_policy is CredentialPolicy.RANDOM:
            self.summary.credentials.append(IssuedCredential(record.index_number, password))

        if row.image is not None:
            self.attach_picture(row, record)

    def attach_picture(self, row: RosterRow, record: StudentRecord) -> None:
        n = row.source_row_number
        image = row.image
        assert image is not None
        path = image_object_path(self.config.image_path_prefix, record.index_number, record.id, image.extension)
        try:
            url = self.blob_store.upload(image.data, image.content_type, path)
            updated = self.record_store.update_image_url(record.id, url)
        except BlobStoreNotConfiguredError as e:
            reason = str(e) or "image storage is not configured"
        except (BlobStoreError, RecordStoreError) as e:
            reason = str(e)
        except Exception as e:
            logger.exception(f"Row {n}: unexpected failure uploading picture")
            reason = str(e) or type(e).__name__
        else:
            self.summary.replace_created(updated)
            return
        logger.warning(f"Row {n}: picture upload failed for {record.index_number}: {reason}")
        self.fail(
            n,
            f"Row {n}: {record.index_number} - Profile picture upload failed: {reason} "
            f"(student created without picture)",
            "IMAGE_UPLOAD_FAILED",
        )


def ingest_roster(
    data: bytes,
    record_store: RecordStore,
    blob_store: BlobStore,
    *,
    config: IngestConfig | None = None,
    file_name: str = "upload.xlsx",
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = None,
) -> IngestionSummary:
    """Import one uploaded roster.

    Always returns a summary for data-quality problems in individual rows.

    Raises:
        IngestionError: oversized upload, unreadable workbook, no sheets, or a
            mandatory header column missing. Nothing has been written then.
    """
    cfg = config or IngestConfig()
    started = time.perf_counter()
    try:
        prepared = prepare_roster(data, cfg)
    except IngestionError as e:
        logger.error(f"{file_name}: {e}")
        if error_log is not None:
            error_log.append(ErrorRecord.file_level(file_name, str(e)))
        raise

    workbook = prepared.workbook
    association = prepared.association
    summary = IngestionSummary(
        total_rows=prepared.data_row_count,
        ignored_count=len(prepared.ignored),
        warnings=list(workbook.warnings),
        images_extracted=len(workbook.images),
        image_strategy=workbook.image_source.value if workbook.image_source else None,
        trace=list(association.trace),
    )
    if association.unverified and association.assignments:
        summary.warnings.append(UNVERIFIED_WARNING)
    for warning in summary.warnings:
        logger.warning(warning)

    run = _Run(summary, record_store, blob_store, cfg, file_name, workbook.sheet_name, error_log)
    for rejected in prepared.rejected:
        run.fail(rejected.row_number, rejected.reason, rejected.error_type)

    logger.info(
        f"{file_name}: {len(prepared.accepted)} row(s) to import, "
        f"{len(prepared.rejected)} invalid, {len(prepared.ignored)} ignored, "
        f"{len(association.assignments)}/{len(workbook.images)} picture(s) matched"
    )

    # sequential on purpose: duplicate checks must see earlier rows' inserts
    with RowProgressTracker(len(prepared.accepted), enabled=show_progress) as progress:
        for row in prepared.accepted:
            run.import_row(row)
            progress.advance(summary)

    summary.elapsed_seconds = time.perf_counter() - started
    return summary


def ingest_file(
    path: Path,
    record_store: RecordStore,
    blob_store: BlobStore,
    *,
    config: IngestConfig | None = None,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = None,
) -> IngestionSummary:
    cfg = config or IngestConfig()
    size = path.stat().st_size
    # reject before reading a huge file into memory
    if size > cfg.max_upload_bytes:
        err = FileTooLargeError(size, cfg.max_upload_bytes)
        if error_log is not None:
            error_log.append(ErrorRecord.file_level(path.name, str(err)))
        raise err
    return ingest_roster(
        path.read_bytes(),
        record_store,
        blob_store,
        config=cfg,
        file_name=path.name,
        error_log=error_log,
        show_progress=show_progress,
    )
