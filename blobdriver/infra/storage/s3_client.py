"""S3-compatible object store implementation.

This module provides the ``ObjectStore`` implementation used by the s3
storage driver. It works with AWS S3, MinIO, and other S3-compatible object
storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, BinaryIO, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from blobdriver.infra.storage.client import (
    BucketAlreadyOwnedError,
    InvalidRangeError,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    Part,
    StorageError,
    UploadNotFoundError,
    UploadSession,
)

# S3 error code -> error kind seen by the driver; anything else is a plain
# StorageError.
ERROR_TYPES_BY_CODE: dict[str, type[StorageError]] = {
    "NoSuchKey": ObjectNotFoundError,
    "NotFound": ObjectNotFoundError,
    "404": ObjectNotFoundError,
    "NoSuchUpload": UploadNotFoundError,
    "BucketAlreadyOwnedByYou": BucketAlreadyOwnedError,
    "InvalidRange": InvalidRangeError,
}

PRIVATE_ACL = "private"
SSE_ALGORITHM = "AES256"
DEFAULT_REGION = "us-east-1"


@lru_cache(maxsize=1)
def known_regions() -> frozenset[str]:
    """Return every region botocore knows for S3, across all partitions."""
    session = boto3.session.Session()
    regions: set[str] = set()
    for partition in session.get_available_partitions():
        regions.update(session.get_available_regions("s3", partition_name=partition))
    return frozenset(regions)


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""


def _translate_error(exc: Exception, message: str) -> StorageError:
    error_type = ERROR_TYPES_BY_CODE.get(_error_code(exc), StorageError)
    return error_type(f"{message}: {exc}")


def _encryption_params(encrypt: bool) -> dict[str, Any]:
    return {"ServerSideEncryption": SSE_ALGORITHM} if encrypt else {}


class S3ObjectStore:
    """S3-compatible object store bound to a single bucket.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations.
    """

    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key: str,
        secret_key: str,
        endpoint_url: str | None = None,
        addressing_style: str = "path",
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._client = self._build_client(
            region=region,
            access_key=access_key,
            secret_key=secret_key,
            endpoint_url=endpoint_url,
            addressing_style=addressing_style,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    @staticmethod
    def _build_client(
        *,
        region: str,
        access_key: str,
        secret_key: str,
        endpoint_url: str | None,
        addressing_style: str,
    ) -> Any:
        """Create a boto3 S3 client."""
        style = (addressing_style or "path").strip().lower()
        config = Config(s3={"addressing_style": style})
        return boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=config,
        )

    def create_bucket(self) -> None:
        """Create the bound bucket with a private ACL."""
        params: dict[str, Any] = {"Bucket": self._bucket, "ACL": PRIVATE_ACL}
        if self._region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {
                "LocationConstraint": self._region
            }
        try:
            self._client.create_bucket(**params)
        except Exception as exc:
            raise _translate_error(exc, "Failed to create bucket") from exc

    def get_object(self, *, key: str) -> bytes:
        """Download a whole object."""
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except Exception as exc:
            raise _translate_error(exc, "Failed to get object") from exc

    def head_object(self, *, key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except Exception as exc:
            raise _translate_error(exc, "Failed to get object metadata") from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

    def open_object(self, *, key: str, offset: int = 0) -> BinaryIO:
        """Open a streaming body over the object from ``offset`` onwards."""
        try:
            response = self._client.get_object(
                Bucket=self._bucket,
                Key=key,
                Range=f"bytes={int(offset)}-",
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to open object") from exc
        return response["Body"]

    def put_object(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str,
        encrypt: bool = False,
    ) -> None:
        """Store a whole object."""
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ACL=PRIVATE_ACL,
                **_encryption_params(encrypt),
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to put object") from exc

    def list_multipart_uploads(self, *, prefix: str) -> list[UploadSession]:
        """List open multipart uploads under ``prefix``, following pagination."""
        params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
        sessions: list[UploadSession] = []
        while True:
            try:
                response = self._client.list_multipart_uploads(**params)
            except Exception as exc:
                raise _translate_error(
                    exc, "Failed to list multipart uploads"
                ) from exc

            for upload in response.get("Uploads", []):
                sessions.append(
                    UploadSession(
                        upload_id=str(upload["UploadId"]),
                        key=str(upload["Key"]),
                        initiated=upload.get("Initiated"),
                    )
                )

            if not response.get("IsTruncated"):
                return sessions
            params["KeyMarker"] = response.get("NextKeyMarker", "")
            params["UploadIdMarker"] = response.get("NextUploadIdMarker", "")

    def init_multipart_upload(
        self,
        *,
        key: str,
        content_type: str,
        encrypt: bool = False,
    ) -> UploadSession:
        """Initialize a multipart upload session."""
        try:
            response = self._client.create_multipart_upload(
                Bucket=self._bucket,
                Key=key,
                ContentType=content_type,
                ACL=PRIVATE_ACL,
                **_encryption_params(encrypt),
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to create multipart upload") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return UploadSession(upload_id=str(upload_id), key=key)

    def list_parts(self, *, key: str, upload_id: str) -> list[Part]:
        """List every part of a session, 1000 parts per request."""
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "UploadId": upload_id,
            "MaxParts": 1000,
        }
        parts: list[Part] = []
        while True:
            try:
                response = self._client.list_parts(**params)
            except Exception as exc:
                raise _translate_error(exc, "Failed to list parts") from exc

            for part in response.get("Parts", []):
                parts.append(
                    Part(
                        part_number=int(part["PartNumber"]),
                        size=int(part["Size"]),
                        etag=str(part["ETag"]),
                    )
                )

            if not response.get("IsTruncated"):
                break
            params["PartNumberMarker"] = int(response["NextPartNumberMarker"])

        return sorted(parts, key=lambda p: p.part_number)

    def upload_part(
        self,
        *,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Part:
        """Upload one part of a session."""
        try:
            response = self._client.upload_part(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to upload part") from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError("S3 response missing ETag")

        return Part(part_number=int(part_number), size=len(body), etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        key: str,
        upload_id: str,
        parts: Sequence[Part],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            self._client.complete_multipart_upload(
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise _translate_error(
                exc, "Failed to complete multipart upload"
            ) from exc

    def copy_object(
        self,
        *,
        source_key: str,
        dest_key: str,
        content_type: str,
        encrypt: bool = False,
    ) -> None:
        """Server-side copy of ``source_key`` to ``dest_key``."""
        try:
            self._client.copy_object(
                Bucket=self._bucket,
                Key=dest_key,
                CopySource={"Bucket": self._bucket, "Key": source_key},
                ContentType=content_type,
                MetadataDirective="REPLACE",
                ACL=PRIVATE_ACL,
                **_encryption_params(encrypt),
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to copy object") from exc

    def list_objects(
        self,
        *,
        prefix: str,
        delimiter: str = "",
        marker: str = "",
        max_keys: int = 1000,
    ) -> ObjectListing:
        """List one page of keys under ``prefix``."""
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Prefix": prefix,
            "MaxKeys": int(max_keys),
        }
        if delimiter:
            params["Delimiter"] = delimiter
        if marker:
            params["Marker"] = marker

        try:
            response = self._client.list_objects(**params)
        except Exception as exc:
            raise _translate_error(exc, "Failed to list objects") from exc

        keys = [str(item["Key"]) for item in response.get("Contents", [])]
        prefixes = [
            str(item["Prefix"]) for item in response.get("CommonPrefixes", [])
        ]
        is_truncated = bool(response.get("IsTruncated"))
        # NextMarker is only returned when a delimiter was given
        next_marker = response.get("NextMarker") or ""
        if is_truncated and not next_marker:
            next_marker = max(keys + prefixes) if keys or prefixes else ""

        return ObjectListing(
            keys=keys,
            common_prefixes=prefixes,
            is_truncated=is_truncated,
            next_marker=str(next_marker),
        )

    def delete_objects(self, *, keys: Sequence[str]) -> None:
        """Delete a batch of keys."""
        if not keys:
            return
        try:
            response = self._client.delete_objects(
                Bucket=self._bucket,
                Delete={
                    "Objects": [{"Key": key} for key in keys],
                    "Quiet": False,
                },
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to delete objects") from exc

        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            raise StorageError(
                f"Failed to delete {len(errors)} object(s): "
                f"{first.get('Key')} ({first.get('Code')})"
            )
