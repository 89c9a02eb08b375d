"""Object store protocol and data types.

This module defines the abstract interface for the remote object store the
storage driver is built on: whole-object reads and writes, multipart upload
sessions, object copy, and prefix listing with batched deletes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object store operations fail."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object does not exist."""


class UploadNotFoundError(StorageError):
    """Raised when a multipart upload session does not exist."""


class BucketAlreadyOwnedError(StorageError):
    """Raised when creating a bucket the caller already owns."""


class InvalidRangeError(StorageError):
    """Raised when a byte range starts beyond the end of the object."""


@dataclass(frozen=True, slots=True)
class Part:
    """An uploaded part of a multipart upload session."""

    part_number: int
    size: int
    etag: str


@dataclass(frozen=True, slots=True)
class UploadSession:
    """An open multipart upload session for one object key."""

    upload_id: str
    key: str
    initiated: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """One page of a prefix listing."""

    keys: list[str] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    is_truncated: bool = False
    next_marker: str = ""


class ObjectStore(Protocol):
    """Protocol defining the object store capabilities used by the driver.

    Implementations are bound to a single bucket. Store specific error
    codes must be translated into the ``StorageError`` subclasses above.
    """

    def create_bucket(self) -> None:
        """Create the bound bucket.

        Raises:
            BucketAlreadyOwnedError: If the caller already owns the bucket.
            StorageError: If the operation fails.
        """
        ...

    def get_object(self, *, key: str) -> bytes:
        """Download a whole object.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def head_object(self, *, key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def open_object(self, *, key: str, offset: int = 0) -> BinaryIO:
        """Open a stream over an object starting at ``offset``.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            InvalidRangeError: If ``offset`` is past the end of the object.
            StorageError: If the operation fails.
        """
        ...

    def put_object(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str,
        encrypt: bool = False,
    ) -> None:
        """Store a whole object with a private ACL."""
        ...

    def list_multipart_uploads(self, *, prefix: str) -> list[UploadSession]:
        """List open multipart upload sessions whose key starts with ``prefix``.

        Raises:
            UploadNotFoundError: If the store reports no such upload.
            StorageError: If the operation fails.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        key: str,
        content_type: str,
        encrypt: bool = False,
    ) -> UploadSession:
        """Initialize a multipart upload session with a private ACL."""
        ...

    def list_parts(self, *, key: str, upload_id: str) -> list[Part]:
        """List every uploaded part of a session, ordered by part number."""
        ...

    def upload_part(
        self,
        *,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Part:
        """Upload one numbered part of a session.

        Args:
            key: Object key of the session.
            upload_id: Multipart upload ID.
            part_number: Part number (1-based).
            body: Part content.

        Returns:
            The uploaded Part with the ETag returned by the store.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        key: str,
        upload_id: str,
        parts: Sequence[Part],
    ) -> None:
        """Complete a session by combining ``parts`` into the final object."""
        ...

    def copy_object(
        self,
        *,
        source_key: str,
        dest_key: str,
        content_type: str,
        encrypt: bool = False,
    ) -> None:
        """Copy an object inside the bound bucket."""
        ...

    def list_objects(
        self,
        *,
        prefix: str,
        delimiter: str = "",
        marker: str = "",
        max_keys: int = 1000,
    ) -> ObjectListing:
        """List one page of keys under ``prefix``.

        With a delimiter, keys below the next delimiter are rolled up into
        ``common_prefixes``. Pass ``next_marker`` of a truncated page as
        ``marker`` to fetch the following page.
        """
        ...

    def delete_objects(self, *, keys: Sequence[str]) -> None:
        """Delete a batch of keys (at most 1000)."""
        ...
