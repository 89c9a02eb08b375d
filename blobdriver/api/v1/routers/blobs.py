"""Blob API router.

This module exposes the storage driver contract over HTTP: whole-object
content, ranged and resumable streams, committed size, listing, move and
recursive delete. URL paths map onto logical paths with a leading slash.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from blobdriver.api.v1.deps import get_driver
from blobdriver.api.v1.schemas.blobs import (
    ListingOut,
    MoveRequest,
    SizeOut,
    WriteOutcomeOut,
)
from blobdriver.api.v1.utils import (
    RequestBodyReader,
    http_error,
    iter_stream,
    logical_path,
)
from blobdriver.infra.storage.client import StorageError
from blobdriver.storagedriver.base import StorageDriver
from blobdriver.storagedriver.errors import StorageDriverError

OCTET_STREAM = "application/octet-stream"

router = APIRouter()


@router.get(
    "/content/{path:path}",
    response_class=Response,
    summary="Get content",
    description="Return the whole object stored at a path.",
)
def get_content(
    path: str,
    driver: StorageDriver = Depends(get_driver),
) -> Response:
    try:
        content = driver.get_content(logical_path(path))
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return Response(content=content, media_type=OCTET_STREAM)


@router.put(
    "/content/{path:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Put content",
    description="Store the request body as the whole object at a path.",
)
async def put_content(
    request: Request,
    path: str,
    driver: StorageDriver = Depends(get_driver),
) -> Response:
    content = await request.body()
    try:
        await run_in_threadpool(driver.put_content, logical_path(path), content)
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/content/{path:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete path",
    description="Recursively delete a path and everything below it.",
)
def delete_content(
    path: str,
    driver: StorageDriver = Depends(get_driver),
) -> Response:
    try:
        driver.delete(logical_path(path))
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/stream/{path:path}",
    response_class=StreamingResponse,
    summary="Read stream",
    description="Stream the object at a path starting at a byte offset.",
)
def read_stream(
    path: str,
    offset: int = Query(default=0, ge=0),
    driver: StorageDriver = Depends(get_driver),
) -> StreamingResponse:
    try:
        stream = driver.read_stream(logical_path(path), offset)
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return StreamingResponse(iter_stream(stream), media_type=OCTET_STREAM)


@router.put(
    "/stream/{path:path}",
    response_model=WriteOutcomeOut,
    summary="Write stream",
    description=(
        "Write the request body to a path starting at `offset`, for an object "
        "whose final size is `size`. A body that ends early leaves a partial "
        "write that can be resumed from the returned `bytes_committed`."
    ),
)
async def write_stream(
    request: Request,
    path: str,
    size: int = Query(ge=0),
    offset: int = Query(default=0, ge=0),
    driver: StorageDriver = Depends(get_driver),
) -> WriteOutcomeOut:
    reader = RequestBodyReader(request.stream())
    try:
        outcome = await run_in_threadpool(
            driver.write_stream, logical_path(path), offset, size, reader
        )
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return WriteOutcomeOut.model_validate(outcome)


@router.get(
    "/size/{path:path}",
    response_model=SizeOut,
    summary="Current size",
    description="Bytes committed at a path, including partial stream writes.",
)
def current_size(
    path: str,
    driver: StorageDriver = Depends(get_driver),
) -> SizeOut:
    target = logical_path(path)
    try:
        size = driver.current_size(target)
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return SizeOut(path=target, size=size)


@router.get(
    "/list/{path:path}",
    response_model=ListingOut,
    summary="List path",
    description="Direct children of a path: files first, then sub-paths.",
)
def list_path(
    path: str,
    driver: StorageDriver = Depends(get_driver),
) -> ListingOut:
    target = logical_path(path)
    try:
        entries = driver.list(target)
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return ListingOut(path=target, entries=entries)


@router.post(
    "/move",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Move object",
    description="Move an object to a new path (copy, then delete the source).",
)
def move(
    payload: MoveRequest,
    driver: StorageDriver = Depends(get_driver),
) -> Response:
    try:
        driver.move(logical_path(payload.source), logical_path(payload.destination))
    except (StorageDriverError, StorageError) as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
