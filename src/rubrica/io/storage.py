"""Blob storage access for uploaded rubric and submission files.

Objects are addressed as ``(bucket, path)`` where ``path`` is
``{owner-id}/{file-id}.{ext}``. :class:`FileFetcher` checks the listed size
of an object before downloading it, so an oversized or spoofed upload never
costs a full transfer.
"""

from __future__ import annotations

import asyncio
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from rubrica.errors import (
    FileTooLargeError,
    ForbiddenError,
    NotFoundError,
    ProcessingFailedError,
    TimeoutError,
)
from rubrica.logging import get_logger
from rubrica.utils import with_timeout

logger = get_logger("io.storage")

RUBRICS_BUCKET = "rubrics"
SUBMISSIONS_BUCKET = "submissions"


@dataclass(frozen=True)
class StoredObject:
    name: str
    size: int


class BlobStore(Protocol):
    """Minimal object storage contract."""

    async def list(self, bucket: str, directory: str) -> list[StoredObject]: ...

    async def download(self, bucket: str, path: str) -> bytes: ...

    async def remove(self, bucket: str, path: str) -> None: ...


def split_object_path(path: str) -> tuple[str, str]:
    """Split ``owner/file.ext`` into (directory, filename), rejecting traversal."""
    if not path or path.startswith("/") or "\\" in path:
        raise NotFoundError(f"invalid object path {path!r}")
    parts = path.split("/")
    if any(p in ("", ".", "..") for p in parts):
        raise NotFoundError(f"invalid object path {path!r}")
    return posixpath.dirname(path), posixpath.basename(path)


def ensure_owned_path(owner: str, path: str) -> None:
    """The first path segment must be the owner id."""
    directory, _ = split_object_path(path)
    if directory.split("/")[0] != owner:
        raise ForbiddenError(f"object path {path!r} is outside {owner}'s folder")


class LocalBlobStore:
    """Filesystem-backed blob store: ``<root>/<bucket>/<path>``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, bucket: str, path: str) -> Path:
        if not bucket or "/" in bucket or bucket in (".", ".."):
            raise NotFoundError(f"invalid bucket {bucket!r}")
        if path:
            split_object_path(path)
        return self.root / bucket / path

    async def list(self, bucket: str, directory: str) -> list[StoredObject]:
        base = self._resolve(bucket, directory)

        def _scan() -> list[StoredObject]:
            if not base.is_dir():
                raise NotFoundError(f"directory {bucket}/{directory} does not exist")
            return [
                StoredObject(name=p.name, size=p.stat().st_size)
                for p in sorted(base.iterdir())
                if p.is_file()
            ]

        return await asyncio.to_thread(_scan)

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as ex:
            raise NotFoundError(f"object {bucket}/{path} does not exist") from ex

    async def upload(self, bucket: str, path: str, data: bytes) -> None:
        target = self._resolve(bucket, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)

    async def remove(self, bucket: str, path: str) -> None:
        target = self._resolve(bucket, path)
        await asyncio.to_thread(target.unlink, True)


class FileFetcher:
    """Resolve a stored file to bytes after checking that it exists and is small enough."""

    def __init__(self, store: BlobStore, *, timeout_s: float = 30) -> None:
        self._store = store
        self._timeout_s = timeout_s

    async def fetch(self, bucket: str, path: str, *, max_bytes: int) -> bytes:
        directory, filename = split_object_path(path)
        try:
            listing = await with_timeout(
                self._store.list(bucket, directory), self._timeout_s, "storage list"
            )
        except (NotFoundError, TimeoutError):
            raise
        except OSError as ex:
            raise NotFoundError(f"could not list {bucket}/{directory}: {ex}") from ex

        info = next((o for o in listing if o.name == filename), None)
        if info is None:
            raise NotFoundError(f"object {bucket}/{path} not found")
        if info.size > max_bytes:
            logger.warning(
                "refusing download of %s/%s: size=%d limit=%d", bucket, path, info.size, max_bytes
            )
            raise FileTooLargeError(f"{bucket}/{path} is {info.size} bytes (limit {max_bytes})")

        try:
            data = await with_timeout(
                self._store.download(bucket, path), self._timeout_s, "storage download"
            )
        except (NotFoundError, TimeoutError):
            raise
        except OSError as ex:
            raise ProcessingFailedError(f"download of {bucket}/{path} failed: {ex}") from ex
        if len(data) > max_bytes:
            raise FileTooLargeError(f"{bucket}/{path} is {len(data)} bytes (limit {max_bytes})")
        return data
