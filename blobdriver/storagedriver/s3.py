"""Storage driver backed by an S3-compatible object store.

Objects are stored at their logical path, used verbatim as the key, in a
single bucket. Whole-object operations map directly onto the store; resumable
stream writes are assembled from multipart upload sessions (see
``blobdriver.storagedriver.writer``).
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Mapping

from blobdriver.infra.storage.client import (
    BucketAlreadyOwnedError,
    InvalidRangeError,
    ObjectNotFoundError,
    ObjectStore,
    StorageError,
)
from blobdriver.infra.storage.s3_client import S3ObjectStore, known_regions
from blobdriver.storagedriver.chunking import MAX_PARTS, MIN_CHUNK_SIZE, ChunkPlanner
from blobdriver.storagedriver.errors import (
    DriverConfigurationError,
    InvalidOffsetError,
    PathNotFoundError,
)
from blobdriver.storagedriver.sessions import OCTET_STREAM, UploadSessionManager
from blobdriver.storagedriver.writer import StreamWriter, WriteOutcome

logger = logging.getLogger("storage")

DRIVER_NAME = "s3"

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(value: str) -> bool:
    """Parse the boolean spellings accepted in driver parameters."""
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value {value!r}")


def _require(parameters: Mapping[str, str], name: str) -> str:
    value = parameters.get(name)
    if not value:
        raise DriverConfigurationError(f"No {name} parameter provided")
    return value


def _optional_int(parameters: Mapping[str, str], name: str, default: int) -> int:
    raw = parameters.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise DriverConfigurationError(
            f"Unable to parse the {name} parameter: {exc}"
        ) from exc


class S3Driver:
    """``StorageDriver`` implementation backed by Amazon S3 or a compatible store."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        encrypt: bool = False,
        planner: ChunkPlanner | None = None,
    ) -> None:
        self._store = store
        self._encrypt = encrypt
        self._planner = planner or ChunkPlanner()
        self._sessions = UploadSessionManager(store, encrypt=encrypt)
        self._writer = StreamWriter(
            store, sessions=self._sessions, planner=self._planner
        )

    @property
    def encrypt(self) -> bool:
        return self._encrypt

    @property
    def planner(self) -> ChunkPlanner:
        return self._planner

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, str]) -> "S3Driver":
        """Construct a driver from a parameters mapping.

        Required parameters: ``accesskey``, ``secretkey``, ``region``,
        ``bucket``, ``encrypt``. Optional: ``endpoint``,
        ``addressingstyle``, ``minchunksize``, ``maxparts``.

        Raises:
            DriverConfigurationError: If a parameter is missing or invalid.
            StorageError: If the bucket cannot be created.
        """
        access_key = _require(parameters, "accesskey")
        secret_key = _require(parameters, "secretkey")
        region = _require(parameters, "region")
        if region not in known_regions():
            raise DriverConfigurationError(f"Invalid region provided: {region}")
        bucket = _require(parameters, "bucket")

        if "encrypt" not in parameters:
            raise DriverConfigurationError("No encrypt parameter provided")
        try:
            encrypt = parse_bool(parameters["encrypt"])
        except ValueError as exc:
            raise DriverConfigurationError(
                f"Unable to parse the encrypt parameter: {exc}"
            ) from exc

        try:
            planner = ChunkPlanner(
                min_chunk_size=_optional_int(
                    parameters, "minchunksize", MIN_CHUNK_SIZE
                ),
                max_parts=_optional_int(parameters, "maxparts", MAX_PARTS),
            )
        except ValueError as exc:
            raise DriverConfigurationError(str(exc)) from exc

        store = S3ObjectStore(
            bucket=bucket,
            region=region,
            access_key=access_key,
            secret_key=secret_key,
            endpoint_url=parameters.get("endpoint") or None,
            addressing_style=parameters.get("addressingstyle") or "path",
        )
        return cls.create(store, encrypt=encrypt, planner=planner)

    @classmethod
    def create(
        cls,
        store: ObjectStore,
        *,
        encrypt: bool = False,
        planner: ChunkPlanner | None = None,
    ) -> "S3Driver":
        """Ensure the store's bucket exists, then build the driver."""
        try:
            store.create_bucket()
        except BucketAlreadyOwnedError:
            logger.debug("bucket_already_owned")
        return cls(store, encrypt=encrypt, planner=planner)

    def get_content(self, path: str) -> bytes:
        try:
            return self._store.get_object(key=path)
        except ObjectNotFoundError as exc:
            raise PathNotFoundError(path) from exc

    def put_content(self, path: str, content: bytes) -> None:
        self._store.put_object(
            key=path,
            body=content,
            content_type=OCTET_STREAM,
            encrypt=self._encrypt,
        )

    def read_stream(self, path: str, offset: int = 0) -> BinaryIO:
        if offset < 0:
            raise InvalidOffsetError(path, offset)
        try:
            return self._store.open_object(key=path, offset=offset)
        except ObjectNotFoundError as exc:
            raise PathNotFoundError(path) from exc
        except InvalidRangeError as exc:
            raise InvalidOffsetError(path, offset) from exc

    def write_stream(
        self, path: str, offset: int, size: int, stream: BinaryIO
    ) -> WriteOutcome:
        return self._writer.write(path, offset, size, stream)

    def current_size(self, path: str) -> int:
        """Bytes committed at ``path``.

        With an open upload session this is the size of its uploaded parts;
        otherwise it is the size of the stored object, or 0 if there is none.
        """
        session = self._sessions.find(path)
        if session is not None:
            parts = self._sessions.list_parts(session)
            if not parts:
                return 0
            return (len(parts) - 1) * parts[0].size + parts[-1].size

        try:
            return self._store.head_object(key=path).size_bytes
        except ObjectNotFoundError:
            return 0

    def list(self, path: str) -> list[str]:
        prefix = path if path.endswith("/") else f"{path}/"

        files: list[str] = []
        directories: list[str] = []
        marker = ""
        while True:
            listing = self._store.list_objects(
                prefix=prefix, delimiter="/", marker=marker, max_keys=MAX_PARTS
            )
            files.extend(listing.keys)
            directories.extend(common[:-1] for common in listing.common_prefixes)
            if not listing.is_truncated:
                break
            marker = listing.next_marker

        return files + directories

    def move(self, source: str, dest: str) -> None:
        # S3 has no rename
        try:
            self._store.copy_object(
                source_key=source,
                dest_key=dest,
                content_type=OCTET_STREAM,
                encrypt=self._encrypt,
            )
        except StorageError as exc:
            raise PathNotFoundError(source) from exc

        # only the object itself; keys below source/ stay where they are
        self._store.delete_objects(keys=[source])

    def delete(self, path: str) -> None:
        subtree = path.rstrip("/") + "/"

        def _doomed(keys: list[str]) -> list[str]:
            return [key for key in keys if key == path or key.startswith(subtree)]

        try:
            listing = self._store.list_objects(prefix=path, max_keys=MAX_PARTS)
        except StorageError as exc:
            raise PathNotFoundError(path) from exc

        deleted = 0
        while True:
            keys = _doomed(listing.keys)
            if keys:
                self._store.delete_objects(keys=keys)
                deleted += len(keys)
            if not listing.is_truncated:
                break
            listing = self._store.list_objects(
                prefix=path, marker=listing.next_marker, max_keys=MAX_PARTS
            )

        if not deleted:
            raise PathNotFoundError(path)

        logger.info(
            "objects_deleted path=%s count=%s",
            path,
            deleted,
            extra={"extra": {"path": path, "count": deleted}},
        )
