"""Object store abstraction layer.

This module provides a protocol-based abstraction over the remote object
store, enabling support for S3, MinIO, and other S3-compatible services.
"""

from .client import (
    BucketAlreadyOwnedError,
    InvalidRangeError,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    ObjectStore,
    Part,
    StorageError,
    UploadNotFoundError,
    UploadSession,
)

__all__ = [
    "BucketAlreadyOwnedError",
    "InvalidRangeError",
    "ObjectHead",
    "ObjectListing",
    "ObjectNotFoundError",
    "ObjectStore",
    "Part",
    "StorageError",
    "UploadNotFoundError",
    "UploadSession",
]
