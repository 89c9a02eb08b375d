from .base import StorageDriver
from .chunking import MAX_PARTS, MIN_CHUNK_SIZE, ChunkPlanner
from .errors import (
    DriverConfigurationError,
    InvalidOffsetError,
    PathNotFoundError,
    StorageDriverError,
    UnknownDriverError,
)
from .factory import DriverRegistry, build_registry
from .s3 import S3Driver
from .sessions import UploadSessionManager
from .writer import StreamWriter, WriteOutcome, WriteState

__all__ = [
    "ChunkPlanner",
    "DriverConfigurationError",
    "DriverRegistry",
    "InvalidOffsetError",
    "MAX_PARTS",
    "MIN_CHUNK_SIZE",
    "PathNotFoundError",
    "S3Driver",
    "StorageDriver",
    "StorageDriverError",
    "StreamWriter",
    "UnknownDriverError",
    "UploadSessionManager",
    "WriteOutcome",
    "WriteState",
]
