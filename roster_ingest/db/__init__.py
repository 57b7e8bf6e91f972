from .record_store import (
    DuplicateRecordError,
    InMemoryRecordStore,
    PostgresRecordStore,
    RecordStore,
    RecordStoreError,
)

__all__ = [
    "DuplicateRecordError",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "RecordStoreError",
]
