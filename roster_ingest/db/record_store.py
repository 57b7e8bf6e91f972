from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import psycopg2
import psycopg2.errors

from ..models.student import NewStudent, StudentRecord
from ..services.credentials import MIN_BCRYPT_ROUNDS, hash_password

if TYPE_CHECKING:
    from ..config.loader import DatabaseConfig

"""RecordStore collaborators.

The pipeline only needs three operations:
- exists_by_identifier(index_number) -> bool
- create(NewStudent) -> StudentRecord
- update_image_url(record_id, url) -> StudentRecord

InMemoryRecordStore backs dry runs and tests; PostgresRecordStore writes to
the ``students`` table, one short transaction per call so a failing row
never rolls back its neighbours.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RecordStore",
    "RecordStoreError",
    "DuplicateRecordError",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "resolve_dsn",
    "postgres_connection",
]


class RecordStoreError(Exception):
    pass


class DuplicateRecordError(RecordStoreError):
    """Identifier already present (uniqueness backstop)."""


class RecordStore(Protocol):
    def exists_by_identifier(self, index_number: str) -> bool: ...

    def create(self, student: NewStudent) -> StudentRecord: ...

    def update_image_url(self, record_id: str, url: str) -> StudentRecord: ...


class InMemoryRecordStore:
    def __init__(self) -> None:
        self.records: dict[str, StudentRecord] = {}
        self.password_hashes: dict[str, str] = {}
        self._by_identifier: dict[str, str] = {}

    def exists_by_identifier(self, index_number: str) -> bool:
        return index_number in self._by_identifier

    def create(self, student: NewStudent) -> StudentRecord:
        if student.index_number in self._by_identifier:
            raise DuplicateRecordError(f"index number {student.index_number} already exists")
        record = StudentRecord(
            id=str(uuid.uuid4()),
            index_number=student.index_number,
            full_name=student.full_name,
            email=student.email,
            phone_number=student.phone_number,
            created_at=datetime.now(UTC),
        )
        self.records[record.id] = record
        self.password_hashes[record.id] = hash_password(student.password, rounds=MIN_BCRYPT_ROUNDS)
        self._by_identifier[student.index_number] = record.id
        return record

    def update_image_url(self, record_id: str, url: str) -> StudentRecord:
        try:
            record = self.records[record_id]
        except KeyError as e:
            raise RecordStoreError(f"no student with id {record_id}") from e
        updated = record.with_picture(url)
        self.records[record_id] = updated
        return updated

    def get_by_identifier(self, index_number: str) -> StudentRecord | None:
        record_id = self._by_identifier.get(index_number)
        return self.records.get(record_id) if record_id else None


_RETURNING = "id, index_number, full_name, email, phone_number, profile_picture, has_voted, created_at"


def _record_from_row(row: tuple[Any, ...]) -> StudentRecord:
    return StudentRecord(
        id=str(row[0]),
        index_number=row[1],
        full_name=row[2],
        email=row[3],
        phone_number=row[4],
        profile_picture=row[5],
        has_voted=bool(row[6]),
        created_at=row[7],
    )


class PostgresRecordStore:
    """psycopg2-backed store for the ``students`` table."""

    def __init__(self, connection: Any, table: str = "students") -> None:
        if not table.replace("_", "").isalnum():
            raise ValueError(f"invalid table name: {table}")
        self.connection = connection
        self.table = table

    def _run(self, sql: str, params: tuple[Any, ...]) -> tuple[Any, ...] | None:
        try:
            with self.connection.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
            self.connection.commit()
            return row
        except Exception as e:
            try:
                self.connection.rollback()
            except Exception:  # pragma: no cover
                logger.debug("rollback failed after record store error")
            if isinstance(e, psycopg2.errors.UniqueViolation):
                raise DuplicateRecordError(str(e).strip()) from e
            raise RecordStoreError(str(e).strip()) from e

    def exists_by_identifier(self, index_number: str) -> bool:
        row = self._run(f"SELECT 1 FROM {self.table} WHERE index_number = %s LIMIT 1", (index_number,))
        return row is not None

    def create(self, student: NewStudent) -> StudentRecord:
        row = self._run(
            f"INSERT INTO {self.table} (index_number, password, full_name, email, phone_number) "
            f"VALUES (%s, %s, %s, %s, %s) RETURNING {_RETURNING}",
            (
                student.index_number,
                hash_password(student.password),
                student.full_name,
                student.email,
                student.phone_number,
            ),
        )
        if row is None:  # pragma: no cover
            raise RecordStoreError("INSERT returned no row")
        return _record_from_row(row)

    def update_image_url(self, record_id: str, url: str) -> StudentRecord:
        row = self._run(
            f"UPDATE {self.table} SET profile_picture = %s, updated_at = now() "
            f"WHERE id = %s RETURNING {_RETURNING}",
            (url, record_id),
        )
        if row is None:
            raise RecordStoreError(f"no student with id {record_id}")
        return _record_from_row(row)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string resolution, environment first.

    1. DATABASE_URL / PGDSN (or config dsn) used verbatim
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, falling back to
       the config ``database`` section
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def postgres_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False
    try:
        yield conn
    finally:
        try:
            conn.close()
        except Exception:
            logger.debug("error closing database connection")
