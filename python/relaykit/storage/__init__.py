"""
Storage module for RelayKit.

Provides sinks for out-of-band chunked uploads.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import (
    ChunkKey,
    ChunkSink,
    ChunkTooLargeError,
    InvalidChunkKeyError,
    UploadError,
)

logger = logging.getLogger(__name__)


class DiskChunkSink(ChunkSink):
    """
    Writes each chunk to ``<root>/<room>/<user>/<session>/chunk-<seq>.bin``.

    A chunk re-sent with the same sequence number overwrites the earlier one.
    """

    def __init__(self, root: Union[str, Path], max_chunk_bytes: int):
        super().__init__(max_chunk_bytes)
        self.root = Path(root)

    async def open(self) -> None:
        """Create the upload root if it does not exist."""
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        logger.info(f"Upload directory ready: {self.root}")

    def path_for(self, key: ChunkKey) -> Path:
        """Where a chunk with this key is stored."""
        return self.root.joinpath(*key.segments(), key.filename)

    async def save_chunk(self, key: ChunkKey, data: bytes) -> str:
        self.check_size(len(data))
        path = self.path_for(key)
        await asyncio.to_thread(self._write, path, data)
        logger.debug(f"Saved {len(data)} bytes to {path}")
        return str(path)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class MemoryChunkSink(ChunkSink):
    """In-memory sink for development and testing."""

    def __init__(self, max_chunk_bytes: int):
        super().__init__(max_chunk_bytes)
        self._chunks: Dict[str, bytes] = {}

    async def save_chunk(self, key: ChunkKey, data: bytes) -> str:
        self.check_size(len(data))
        location = "/".join((*key.segments(), key.filename))
        self._chunks[location] = bytes(data)
        return location

    def load(self, location: str) -> Optional[bytes]:
        """Get a stored chunk by location."""
        return self._chunks.get(location)

    @property
    def locations(self) -> List[str]:
        """Get every stored location."""
        return list(self._chunks.keys())


__all__ = [
    "ChunkKey",
    "ChunkSink",
    "ChunkTooLargeError",
    "InvalidChunkKeyError",
    "UploadError",
    "DiskChunkSink",
    "MemoryChunkSink",
]
