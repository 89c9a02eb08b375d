import logging
import time
import uuid
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from blobdriver.infra.observability.metrics import LATENCY, REQUESTS

logger = logging.getLogger("http")


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def _route_label(request: Request) -> str:
    route_template = request.scope.get("route", None)
    if route_template and hasattr(route_template, "path"):
        return route_template.path
    return request.url.path


def _request_fields(
    request: Request, request_id: str, route: str, status: int, elapsed: float
) -> dict[str, Any]:
    return {
        "method": request.method,
        "route": route,
        "query": request.url.query,
        "status": status,
        "duration_ms": round(elapsed * 1000, 3),
        "request_id": request_id,
        "client_ip": _client_ip(request),
        "user_agent": request.headers.get("User-Agent"),
        "content_length": request.headers.get("Content-Length"),
    }


def _log_line(prefix: str) -> str:
    return (
        f"{prefix} method=%s route=%s status=%s duration_ms=%.3f "
        "request_id=%s client_ip=%s"
    )


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request metrics, propagates X-Request-Id, logs each request.

    Request and response bodies are blobs and are never read here, so
    streamed uploads and downloads pass through untouched. Latency covers
    the time to the response headers, not the streamed body.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

        try:
            response = await call_next(request)
        except Exception as exc:
            fields = _request_fields(
                request,
                request_id,
                request.url.path,
                500,
                time.perf_counter() - start,
            )
            fields["exception"] = repr(exc)
            logger.exception(
                _log_line("request_error"),
                fields["method"],
                fields["route"],
                500,
                fields["duration_ms"],
                request_id,
                fields["client_ip"] or "-",
                extra={"extra": fields},
            )
            raise

        elapsed = time.perf_counter() - start
        status_code = response.status_code
        route = _route_label(request)

        REQUESTS.labels(request.method, route, str(status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)

        if "X-Request-Id" not in response.headers:
            response.headers["X-Request-Id"] = request_id

        level = logging.INFO
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING

        fields = _request_fields(request, request_id, route, status_code, elapsed)
        logger.log(
            level,
            _log_line("request"),
            request.method,
            route,
            status_code,
            fields["duration_ms"],
            request_id,
            fields["client_ip"] or "-",
            extra={"extra": fields},
        )
        return response
