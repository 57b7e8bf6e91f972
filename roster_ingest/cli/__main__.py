from __future__ import annotations

import argparse
import csv
import json
import sys
from contextlib import ExitStack
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, IngestConfig, load_config
from ..db.record_store import InMemoryRecordStore, PostgresRecordStore, RecordStore, postgres_connection
from ..excel.errors import IngestionError
from ..excel.headers import resolve_columns
from ..excel.reader import read_workbook
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.grid import display_text
from ..models.outcome import IngestionSummary
from ..services.association import associate_images
from ..services.orchestrator import ingest_file
from ..services.summary import render_summary_line
from ..storage.blob_store import (
    BlobStore,
    InMemoryBlobStore,
    LocalBlobStore,
    SupabaseBlobStore,
    UnconfiguredBlobStore,
)

"""CLI entrypoint: ``roster-ingest FILE``.

Flow:
- Load ``.env`` (overrides existing variables, so DB / storage credentials in
  the file win)
- Load config (``config/ingest.yml`` if present, defaults otherwise)
- Ingest one workbook against PostgreSQL + the configured blob store, or
  in-memory stores with ``--dry-run``
- Print the SUMMARY line and exit 0 / 2 / 1
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="roster-ingest", description="Excel student roster -> election portal importer")
    p.add_argument("file", type=Path, help="Roster workbook (.xlsx)")
    p.add_argument("--config", type=Path, default=None, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--dry-run", action="store_true", help="Use in-memory stores; nothing is written")
    p.add_argument("--inspect-data", action="store_true", help="Print resolved columns, sample rows and images then exit")
    p.add_argument("--json", action="store_true", help="Print the full ledger as JSON")
    p.add_argument("--credentials-out", type=Path, default=None, help="Write issued initial passwords to this CSV")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> IngestConfig:
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return IngestConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def build_blob_store(cfg: IngestConfig) -> BlobStore:
    storage = cfg.storage
    if storage.backend == "local":
        return LocalBlobStore(Path(storage.local_directory), storage.public_base_url)
    if storage.backend == "supabase":
        store = SupabaseBlobStore.from_env(storage.bucket, timeout=storage.timeout_seconds)
        if store is not None:
            return store
        return UnconfiguredBlobStore("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set")
    return UnconfiguredBlobStore()


def _inspect_data(path: Path, cfg: IngestConfig) -> int:
    try:
        workbook = read_workbook(path.read_bytes())
        columns = resolve_columns(workbook.grid.header, cfg.header_labels)
    except (OSError, IngestionError) as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    grid = workbook.grid
    print(f"FILE: {path.name}")
    print(f"  SHEET: {workbook.sheet_name} engine={workbook.engine} rows={len(grid)} cols={grid.width}")
    print(
        f"  columns: name={columns.name} index={columns.identifier} email={columns.email} "
        f"phone={columns.phone} image={columns.image_column}"
    )
    for idx, cells in list(grid.data_rows())[:3]:
        print(f"    row {grid.row_number(idx)}: {[display_text(c) for c in cells]}")
    source = workbook.image_source.value if workbook.image_source else None
    print(f"  images: {len(workbook.images)} source={source}")
    for image in workbook.images:
        print(f"    #{image.ordinal} {image.format} anchor=({image.anchor_row}, {image.anchor_column})")
    association = associate_images(grid, columns, workbook.images, column_tolerance=cfg.column_tolerance)
    if association.unverified and association.assignments:
        print("  association: unverified (ordered fallback)")
    for entry in association.trace:
        print(f"    image #{entry.image_ordinal} -> row {entry.row_number} {entry.strategy.value} {entry.detail}".rstrip())
    for warning in workbook.warnings:
        print(f"  warning: {warning}")
    return EXIT_SUCCESS_ALL


def _write_credentials(path: Path, summary: IngestionSummary) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["index_number", "password"])
        for cred in summary.credentials:
            writer.writerow([cred.index_number, cred.password])


def main(argv: list[str] | None = None) -> int:
    # only None means "read sys.argv"; [] from tests must stay empty
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.file, cfg)

    error_log = ErrorLogBuffer()
    with ExitStack() as stack:
        record_store: RecordStore
        blob_store: BlobStore
        if args.dry_run:
            logger.info("dry run: using in-memory stores")
            record_store = InMemoryRecordStore()
            blob_store = InMemoryBlobStore(cfg.storage.bucket)
        else:
            try:
                conn = stack.enter_context(postgres_connection(cfg.database))
            except Exception as e:
                logger.error(f"database connection failed: {e}")
                return EXIT_FATAL
            record_store = PostgresRecordStore(conn, cfg.database.table)
            blob_store = build_blob_store(cfg)
            if isinstance(blob_store, SupabaseBlobStore):
                stack.callback(blob_store.close)

        try:
            summary = ingest_file(args.file, record_store, blob_store, config=cfg, error_log=error_log)
        except IngestionError as e:
            logger.error(str(e))
            error_log.flush()
            return EXIT_FATAL

    for reason in summary.skipped:
        logger.info(reason)
    for reason in summary.errors:
        logger.error(reason)

    if len(error_log):
        counts = " ".join(f"{kind}={n}" for kind, n in sorted(error_log.counts_by_type().items()))
        logger.info(f"errors by type: {counts}")
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log written: {log_path}")

    if args.credentials_out is not None:
        _write_credentials(args.credentials_out, summary)
        logger.info(f"{len(summary.credentials)} credential(s) written to {args.credentials_out}")

    if args.json:
        print(json.dumps(summary.to_payload(include_trace=True), ensure_ascii=False, indent=2, default=str))

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(summary)[len("SUMMARY "):])

    if summary.error_count > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
