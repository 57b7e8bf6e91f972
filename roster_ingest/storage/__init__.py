from .blob_store import (
    BlobStore,
    BlobStoreError,
    BlobStoreNotConfiguredError,
    InMemoryBlobStore,
    LocalBlobStore,
    SupabaseBlobStore,
    UnconfiguredBlobStore,
)

__all__ = [
    "BlobStore",
    "BlobStoreError",
    "BlobStoreNotConfiguredError",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "UnconfiguredBlobStore",
]
