"""
Abstract chunk sink interface.

Implement this interface to persist uploaded chunks somewhere other than
the local filesystem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple, Union

DEFAULT_ROOM = "room"
DEFAULT_USER = "user"
DEFAULT_SESSION = "session"
DEFAULT_SEQ = "0"
SEQ_WIDTH = 6

_FORBIDDEN_SEGMENTS = {"", ".", ".."}


class UploadError(Exception):
    """Base class for chunk upload failures."""


class ChunkTooLargeError(UploadError):
    """The chunk exceeds the configured maximum size."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Chunk exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class InvalidChunkKeyError(UploadError):
    """An identity field cannot be used as a path component."""


@dataclass(frozen=True)
class ChunkKey:
    """
    Identity of an uploaded chunk.

    Attributes:
        room_id: Room the recording belongs to
        user_id: Uploading user
        session_id: Recording session
        seq: Sequence number as sent by the client
    """
    room_id: str = DEFAULT_ROOM
    user_id: str = DEFAULT_USER
    session_id: str = DEFAULT_SESSION
    seq: str = DEFAULT_SEQ

    @classmethod
    def from_fields(
        cls,
        room_id: Optional[str] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        seq: Optional[Union[str, int]] = None,
    ) -> "ChunkKey":
        """Build a key, substituting defaults for missing or empty fields."""
        return cls(
            room_id=room_id or DEFAULT_ROOM,
            user_id=user_id or DEFAULT_USER,
            session_id=session_id or DEFAULT_SESSION,
            seq=DEFAULT_SEQ if seq is None or seq == "" else str(seq),
        )

    @property
    def filename(self) -> str:
        """Chunk file name with the sequence left-padded to six characters."""
        return f"chunk-{self.seq.rjust(SEQ_WIDTH, '0')}.bin"

    def segments(self) -> Tuple[str, str, str]:
        """
        The directory components for this chunk.

        Raises:
            InvalidChunkKeyError: If any component is not a single safe
                path segment.
        """
        parts = (self.room_id, self.user_id, self.session_id)
        for part in (*parts, self.seq):
            if part in _FORBIDDEN_SEGMENTS or "/" in part or "\\" in part or "\x00" in part:
                raise InvalidChunkKeyError(f"Invalid path segment: {part!r}")
        return parts


class ChunkSink(ABC):
    """Abstract base class for upload sinks."""

    def __init__(self, max_chunk_bytes: int):
        self.max_chunk_bytes = max_chunk_bytes

    def check_size(self, size: int) -> None:
        """
        Raises:
            ChunkTooLargeError: If size exceeds the configured maximum.
        """
        if size > self.max_chunk_bytes:
            raise ChunkTooLargeError(size, self.max_chunk_bytes)

    async def open(self) -> None:
        """Prepare the sink (create directories, connect, ...)."""
        pass

    async def close(self) -> None:
        """Release resources held by the sink."""
        pass

    @abstractmethod
    async def save_chunk(self, key: ChunkKey, data: bytes) -> str:
        """
        Persist one chunk.

        Args:
            key: Identity of the chunk.
            data: The chunk bytes.

        Returns:
            Location the chunk was stored under.

        Raises:
            ChunkTooLargeError: If the chunk is larger than allowed.
            InvalidChunkKeyError: If the key cannot be mapped to a location.
        """
        pass
