"""Resumable stream writes on top of multipart upload sessions.

A write declares the final object size up front and may be interrupted at any
point. Whatever whole parts were uploaded stay in the open session, and a
later write to the same path with the same size can resume from any chunk
boundary those parts cover. The session is completed as soon as the declared
size has been uploaded.
"""

from __future__ import annotations

import logging
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO

from blobdriver.infra.observability.metrics import (
    BYTES_UPLOADED,
    PARTS_UPLOADED,
    STREAM_WRITES,
)
from blobdriver.infra.storage.client import ObjectStore, Part, UploadSession
from blobdriver.storagedriver.chunking import ChunkPlanner
from blobdriver.storagedriver.errors import InvalidOffsetError
from blobdriver.storagedriver.sessions import UploadSessionManager

logger = logging.getLogger("storage")


class WriteState(str, Enum):
    PLANNING = "planning"
    RESUMING = "resuming"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class WriteOutcome:
    """Result of a stream write.

    ``completed`` is False when the input ended before the declared size;
    ``bytes_committed`` then counts only the whole parts held by the session.
    """

    path: str
    bytes_committed: int
    parts_uploaded: int
    completed: bool


def read_full(stream: BinaryIO, size: int) -> bytes:
    """Read from ``stream`` until ``size`` bytes are collected or it ends."""
    buffer = bytearray()
    while len(buffer) < size:
        chunk = stream.read(size - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


class StreamWriter:
    """Runs one resumable write: plan, resume, stream parts, finalize."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        sessions: UploadSessionManager,
        planner: ChunkPlanner | None = None,
    ) -> None:
        self._store = store
        self._sessions = sessions
        self._planner = planner or ChunkPlanner()

    def write(
        self, path: str, offset: int, size: int, stream: BinaryIO
    ) -> WriteOutcome:
        """Write ``size - offset`` bytes from ``stream`` to ``path``.

        The stream is closed before returning, whatever the outcome. Store
        errors abort the write without retrying and leave the session open
        with the parts uploaded so far.

        Raises:
            InvalidOffsetError: If ``offset`` cannot resume the open session.
            StorageError: If the store fails.
        """
        with closing(stream):
            state = WriteState.PLANNING
            try:
                chunk_size = self._planner.chunk_size_for(size)
                session, parts = self._sessions.find_with_parts(path)

                state = self._advance(path, WriteState.RESUMING)
                self._planner.check_resume_offset(
                    path, offset, size, parts, chunk_size
                )
                if session is not None and offset == size and parts:
                    # every byte is uploaded already; only completion is missing
                    if sum(part.size for part in parts) != size:
                        raise InvalidOffsetError(path, offset)
                    state = self._advance(path, WriteState.FINALIZING)
                    outcome = self._finalize(path, size, session, parts, 0)
                    state = WriteState.DONE
                    return outcome

                part_number = self._planner.resume_point(offset, chunk_size)
                parts = parts[: part_number - 1]
                kept = len(parts)
                # sessions are only opened once the offset is known to be valid
                if session is None:
                    session = self._sessions.create(path)

                state = self._advance(path, WriteState.STREAMING)
                outcome = self._stream_parts(
                    path,
                    size,
                    stream,
                    session=session,
                    parts=parts,
                    part_number=part_number,
                    total_read=offset,
                    chunk_size=chunk_size,
                )
                if outcome is None:
                    state = self._advance(path, WriteState.FINALIZING)
                    outcome = self._finalize(
                        path, size, session, parts, len(parts) - kept
                    )
                    state = WriteState.DONE
                else:
                    STREAM_WRITES.labels("partial").inc()
                return outcome
            except Exception as exc:
                logger.warning(
                    "stream_write_failed path=%s state=%s error=%s",
                    path,
                    state.value,
                    exc,
                    extra={
                        "extra": {
                            "path": path,
                            "offset": offset,
                            "size": size,
                            "state": state.value,
                            "error": repr(exc),
                        }
                    },
                )
                STREAM_WRITES.labels(WriteState.FAILED.value).inc()
                raise

    def _stream_parts(
        self,
        path: str,
        size: int,
        stream: BinaryIO,
        *,
        session: UploadSession,
        parts: list[Part],
        part_number: int,
        total_read: int,
        chunk_size: int,
    ) -> WriteOutcome | None:
        """Upload chunks until the declared size is reached or input ends.

        Appends uploaded parts to ``parts``. Returns None once the declared
        size has been uploaded, otherwise the outcome of the partial write.
        """
        uploaded = 0
        while True:
            wanted = min(chunk_size, size - total_read)
            buffer = read_full(stream, wanted)
            total_read += len(buffer)

            if len(buffer) < wanted:
                committed = sum(part.size for part in parts)
                logger.info(
                    "stream_write_partial path=%s committed=%s size=%s",
                    path,
                    committed,
                    size,
                    extra={
                        "extra": {
                            "path": path,
                            "bytes_committed": committed,
                            "size": size,
                            "discarded": len(buffer),
                        }
                    },
                )
                return WriteOutcome(
                    path=path,
                    bytes_committed=committed,
                    parts_uploaded=uploaded,
                    completed=False,
                )

            part = self._store.upload_part(
                key=path,
                upload_id=session.upload_id,
                part_number=part_number,
                body=buffer,
            )
            parts.append(part)
            uploaded += 1
            PARTS_UPLOADED.inc()
            BYTES_UPLOADED.inc(len(buffer))

            if total_read == size:
                return None
            part_number += 1

    def _finalize(
        self,
        path: str,
        size: int,
        session: UploadSession,
        parts: list[Part],
        parts_uploaded: int,
    ) -> WriteOutcome:
        self._store.complete_multipart_upload(
            key=path, upload_id=session.upload_id, parts=parts
        )
        self._advance(path, WriteState.DONE)
        STREAM_WRITES.labels("completed").inc()
        logger.info(
            "stream_write_completed path=%s size=%s parts=%s",
            path,
            size,
            len(parts),
            extra={
                "extra": {
                    "path": path,
                    "size": size,
                    "parts": len(parts),
                    "upload_id": session.upload_id,
                }
            },
        )
        return WriteOutcome(
            path=path,
            bytes_committed=size,
            parts_uploaded=parts_uploaded,
            completed=True,
        )

    @staticmethod
    def _advance(path: str, state: WriteState) -> WriteState:
        logger.debug("stream_write_state path=%s state=%s", path, state.value)
        return state
