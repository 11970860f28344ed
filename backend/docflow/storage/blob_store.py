"""
Blob stores — where uploaded document bytes live.

The workflow engine only ever reads bytes by `storage_key`; writes
happen at upload time, outside the engine.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from docflow.core.logging import get_logger
from docflow.pipeline.errors import StorageError

logger = get_logger(__name__)


class BlobStore(Protocol):
    async def get_bytes(self, storage_key: str) -> bytes: ...

    async def put_bytes(self, storage_key: str, data: bytes) -> None: ...


class LocalBlobStore:
    """Files under a root directory; keys are relative paths."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path(self, storage_key: str) -> Path:
        path = (self.root / storage_key).resolve()
        if not path.is_relative_to(self.root):
            raise StorageError(f"Storage key escapes the storage root: {storage_key}")
        return path

    async def get_bytes(self, storage_key: str) -> bytes:
        path = self._path(storage_key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise StorageError(f"Cannot read blob {storage_key}: {exc}") from exc

    async def put_bytes(self, storage_key: str, data: bytes) -> None:
        path = self._path(storage_key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug("Blob written", storage_key=storage_key, size=len(data))


class InMemoryBlobStore:
    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self._blobs = dict(blobs or {})

    async def get_bytes(self, storage_key: str) -> bytes:
        try:
            return self._blobs[storage_key]
        except KeyError:
            raise StorageError(f"Blob not found: {storage_key}") from None

    async def put_bytes(self, storage_key: str, data: bytes) -> None:
        self._blobs[storage_key] = data
