"""Uniform storage driver contract.

Every driver stores blobs at logical paths (plain string keys) and must
provide the operations below. Hosts obtain drivers through a
``DriverRegistry`` and only depend on this protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, Protocol

if TYPE_CHECKING:
    from blobdriver.storagedriver.writer import WriteOutcome


class StorageDriver(Protocol):
    def get_content(self, path: str) -> bytes:
        """Return the content stored at ``path``.

        Raises:
            PathNotFoundError: If nothing is stored at ``path``.
        """
        ...

    def put_content(self, path: str, content: bytes) -> None:
        """Store ``content`` at ``path``, replacing any existing object."""
        ...

    def read_stream(self, path: str, offset: int = 0) -> BinaryIO:
        """Open a stream over the content at ``path`` from ``offset``.

        The caller owns the returned stream and must close it.

        Raises:
            PathNotFoundError: If nothing is stored at ``path``.
            InvalidOffsetError: If ``offset`` is past the end of the content.
        """
        ...

    def write_stream(
        self, path: str, offset: int, size: int, stream: BinaryIO
    ) -> "WriteOutcome":
        """Write ``stream`` to ``path`` starting at ``offset``.

        ``size`` is the declared final size of the object. A stream that ends
        early leaves a partial write that can be resumed later by calling
        again with an offset reported by ``current_size``. ``stream`` is
        always closed before returning.

        Writers to the same path are not coordinated; callers must serialize
        writes per path.

        Raises:
            InvalidOffsetError: If ``offset`` cannot resume the partial write.
        """
        ...

    def current_size(self, path: str) -> int:
        """Return the number of bytes committed by writes to ``path``."""
        ...

    def list(self, path: str) -> list[str]:
        """Return the direct children of ``path``, files before sub-paths."""
        ...

    def move(self, source: str, dest: str) -> None:
        """Move the object at ``source`` to ``dest``.

        Only the object stored at exactly ``source`` moves. Keys below
        ``source + "/"`` are neither moved nor removed.

        Raises:
            PathNotFoundError: If nothing is stored at ``source``.
        """
        ...

    def delete(self, path: str) -> None:
        """Recursively delete ``path`` and everything below it.

        Raises:
            PathNotFoundError: If nothing is stored at or below ``path``.
        """
        ...
