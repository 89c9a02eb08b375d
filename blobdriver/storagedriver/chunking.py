"""Chunk size planning for multipart-backed stream writes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from blobdriver.infra.storage.client import Part
from blobdriver.storagedriver.errors import InvalidOffsetError

# S3 requires every part except the last to be at least 5MB
MIN_CHUNK_SIZE = 5 * 1024 * 1024
# Largest number of parts returned by a single S3 list request
MAX_PARTS = 1000


@dataclass(frozen=True, slots=True)
class ChunkPlanner:
    """Derives part sizes from a store's minimum part size and part limit."""

    min_chunk_size: int = MIN_CHUNK_SIZE
    max_parts: int = MAX_PARTS

    def __post_init__(self) -> None:
        if self.min_chunk_size <= 0:
            raise ValueError("min_chunk_size must be positive")
        if self.max_parts <= 0:
            raise ValueError("max_parts must be positive")

    def chunk_size_for(self, total_size: int) -> int:
        """Return the smallest doubling of the minimum that fits ``total_size``.

        Every write attempt declaring the same total size gets the same chunk
        size, so resumed writes line up with the parts already uploaded.
        """
        chunk_size = self.min_chunk_size
        # an exact multiple of max_parts chunks also doubles
        while total_size // chunk_size >= self.max_parts:
            chunk_size *= 2
        return chunk_size

    def check_resume_offset(
        self,
        path: str,
        offset: int,
        size: int,
        parts: Sequence[Part],
        chunk_size: int,
    ) -> None:
        """Raise InvalidOffsetError unless ``offset`` can resume the session.

        An unfinished write must resume on a chunk boundary already covered
        by uploaded parts.
        """
        if offset < 0 or offset > size:
            raise InvalidOffsetError(path, offset)
        if offset > len(parts) * chunk_size:
            raise InvalidOffsetError(path, offset)
        if offset < size and offset % chunk_size != 0:
            raise InvalidOffsetError(path, offset)

    @staticmethod
    def resume_point(offset: int, chunk_size: int) -> int:
        """Part number that holds the byte at ``offset``."""
        return offset // chunk_size + 1
