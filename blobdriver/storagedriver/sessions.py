"""Multipart upload session discovery.

The driver keeps no state between calls: each write re-discovers the open
session for a path by asking the store.
"""

from __future__ import annotations

import logging

from blobdriver.infra.storage.client import (
    ObjectStore,
    Part,
    UploadNotFoundError,
    UploadSession,
)

logger = logging.getLogger("storage")

OCTET_STREAM = "application/octet-stream"


class UploadSessionManager:
    """Resolves the single authoritative upload session for a path."""

    def __init__(self, store: ObjectStore, *, encrypt: bool = False) -> None:
        self._store = store
        self._encrypt = encrypt

    def find(self, path: str) -> UploadSession | None:
        """Return the open session for exactly ``path``, if any.

        When the store reports several sessions for the key, the one with the
        highest upload id wins. Repeated calls therefore agree on the same
        session, but two writers racing on one path are not kept apart;
        callers must serialize writes per path.
        """
        try:
            sessions = self._store.list_multipart_uploads(prefix=path)
        except UploadNotFoundError:
            return None

        latest: UploadSession | None = None
        for session in sessions:
            if session.key != path:
                continue
            if latest is None or session.upload_id >= latest.upload_id:
                latest = session
        return latest

    def resolve(self, path: str) -> UploadSession:
        """Return the open session for ``path``, creating one if none exists."""
        existing = self.find(path)
        if existing is not None:
            return existing
        return self.create(path)

    def create(self, path: str) -> UploadSession:
        session = self._store.init_multipart_upload(
            key=path,
            content_type=OCTET_STREAM,
            encrypt=self._encrypt,
        )
        logger.info(
            "upload_session_created path=%s upload_id=%s",
            path,
            session.upload_id,
            extra={"extra": {"path": path, "upload_id": session.upload_id}},
        )
        return session

    def list_parts(self, session: UploadSession) -> list[Part]:
        parts = self._store.list_parts(key=session.key, upload_id=session.upload_id)
        return sorted(parts, key=lambda p: p.part_number)

    def find_with_parts(
        self, path: str
    ) -> tuple[UploadSession | None, list[Part]]:
        """Return the open session for ``path`` and its parts, never creating one."""
        session = self.find(path)
        if session is None:
            return None, []
        return session, self.list_parts(session)
