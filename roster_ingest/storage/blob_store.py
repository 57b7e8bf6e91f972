from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx

"""BlobStore collaborators: upload bytes, get back a public URL.

Failures surface as BlobStoreError; a store that was never configured raises
the distinct BlobStoreNotConfiguredError so callers can tell "upload broke"
from "uploads are switched off".
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BlobStore",
    "BlobStoreError",
    "BlobStoreNotConfiguredError",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "UnconfiguredBlobStore",
]


class BlobStoreError(Exception):
    pass


class BlobStoreNotConfiguredError(BlobStoreError):
    pass


class BlobStore(Protocol):
    def upload(self, data: bytes, content_type: str, path: str) -> str: ...


def _clean_path(path: str) -> str:
    clean = path.replace("\\", "/").lstrip("/")
    if not clean or any(part in ("", ".", "..") for part in clean.split("/")):
        raise BlobStoreError(f"invalid object path: {path!r}")
    return clean


class InMemoryBlobStore:
    def __init__(self, bucket: str = "student-avatars") -> None:
        self.bucket = bucket
        self.objects: dict[str, tuple[bytes, str]] = {}

    def upload(self, data: bytes, content_type: str, path: str) -> str:
        path = _clean_path(path)
        if path in self.objects:
            raise BlobStoreError(f"object already exists: {path}")
        self.objects[path] = (data, content_type)
        return f"memory://{self.bucket}/{path}"


class LocalBlobStore:
    """Writes objects under a directory; URL = public base URL + object path."""

    def __init__(self, root: Path, public_base_url: str | None = None) -> None:
        self.root = Path(root)
        self.public_base_url = (public_base_url or self.root.resolve().as_uri()).rstrip("/")

    def upload(self, data: bytes, content_type: str, path: str) -> str:
        path = _clean_path(path)
        target = self.root / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise BlobStoreError(f"object already exists: {path}") from e
        except OSError as e:
            raise BlobStoreError(f"failed to write {target}: {e}") from e
        return f"{self.public_base_url}/{quote(path)}"


class SupabaseBlobStore:
    """Supabase Storage over its REST API."""

    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str = "student-avatars",
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.bucket = bucket
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    @classmethod
    def from_env(cls, bucket: str = "student-avatars", *, timeout: float = 30.0) -> SupabaseBlobStore | None:
        url = os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if not url or not key:
            return None
        return cls(url, key, bucket, timeout=timeout)

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    def upload(self, data: bytes, content_type: str, path: str) -> str:
        path = _clean_path(path)
        endpoint = f"{self.url}/storage/v1/object/{self.bucket}/{quote(path)}"
        headers = {**self._headers, "Content-Type": content_type, "x-upsert": "false"}
        try:
            response = self._client.post(endpoint, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BlobStoreError(
                f"Failed to upload image: HTTP {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Failed to upload image: {e}") from e
        logger.debug(f"uploaded {len(data)} bytes to {self.bucket}/{path}")
        return self.public_url(path)

    def close(self) -> None:
        self._client.close()


class UnconfiguredBlobStore:
    def __init__(self, reason: str = "image storage is not configured") -> None:
        self.reason = reason

    def upload(self, data: bytes, content_type: str, path: str) -> str:
        raise BlobStoreNotConfiguredError(self.reason)
