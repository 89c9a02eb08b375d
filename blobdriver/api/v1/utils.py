from __future__ import annotations

import io
from typing import AsyncIterator, BinaryIO, Iterator

import anyio.from_thread
from fastapi import HTTPException, status

from blobdriver.infra.storage.client import StorageError
from blobdriver.storagedriver.errors import InvalidOffsetError, PathNotFoundError

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def logical_path(raw_path: str) -> str:
    """Turn a URL path segment into a logical storage path."""
    return "/" + raw_path.lstrip("/")


def http_error(exc: Exception) -> HTTPException:
    """Map a driver or store error onto an HTTP error."""
    if isinstance(exc, PathNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": str(exc), "error_code": "not_found"},
        )
    if isinstance(exc, InvalidOffsetError):
        return HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail={"message": str(exc), "error_code": "invalid_offset"},
        )
    if isinstance(exc, StorageError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "error_code": "bad_gateway"},
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": str(exc), "error_code": "internal_error"},
    )


def iter_stream(stream: BinaryIO, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield ``stream`` in chunks, closing it when done or abandoned."""
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


class RequestBodyReader(io.RawIOBase):
    """Blocking file-like view of an ASGI request body.

    Must be read from a worker thread started by the event loop (for example
    through ``run_in_threadpool``): each refill pulls the next body chunk
    from the loop. At most one received chunk is held at a time.
    """

    def __init__(self, chunks: AsyncIterator[bytes]) -> None:
        super().__init__()
        self._chunks = chunks
        self._pending = b""
        self._exhausted = False

    def readable(self) -> bool:
        return True

    async def _next_chunk(self) -> bytes | None:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    def readinto(self, buffer) -> int:
        while not self._pending and not self._exhausted:
            chunk = anyio.from_thread.run(self._next_chunk)
            if chunk is None:
                self._exhausted = True
            else:
                self._pending = chunk

        if not self._pending:
            return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size
