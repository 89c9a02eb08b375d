import logging

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blobdriver.api.v1.deps import get_driver, require_api_key
from blobdriver.api.v1.routers.blobs import router as blobs_router
from blobdriver.common.config import get_settings
from blobdriver.common.logging import setup_logging
from blobdriver.infra.observability.metrics import metrics_app
from blobdriver.infra.observability.middleware import MetricsMiddleware
from blobdriver.storagedriver.factory import build_registry

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    411: "length_required",
    413: "payload_too_large",
    415: "unsupported_media_type",
    416: "range_not_satisfiable",
    429: "too_many_requests",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}


def _normalize_detail(detail):
    if isinstance(detail, dict):
        maybe_code = detail.get("error_code")
        cleaned = {k: v for k, v in detail.items() if k != "error_code"}
        if len(cleaned) == 1 and "message" in cleaned:
            cleaned = cleaned["message"]
        if not cleaned:
            cleaned = None
        return cleaned, maybe_code if isinstance(maybe_code, str) else None
    return detail, None


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _problem(
    request: Request,
    status_code: int,
    title: str,
    detail,
    error_code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render an RFC 7807 problem document."""
    return JSONResponse(
        status_code=status_code,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
            "error_code": error_code,
            "instance": str(request.url),
            "request_id": request.headers.get("X-Request-Id"),
        },
        headers=headers,
    )


def _describe_driver(settings) -> str:
    parts = [f"driver={settings.STORAGE_DRIVER}"]
    if settings.S3_BUCKET:
        parts.append(f"bucket={settings.S3_BUCKET}")
    parts.append(f"region={settings.S3_REGION}")
    if settings.S3_ENDPOINT_URL:
        parts.append(f"endpoint={settings.S3_ENDPOINT_URL}")
    parts.append(f"encrypt={settings.S3_ENCRYPT}")
    return ", ".join(parts)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    app = FastAPI(
        title="Blob Driver Service",
        version="v1.0",
        description="Resumable blob storage over S3-compatible object stores",
    )
    app.state.registry = build_registry()
    app.state.driver = None

    # Optional CORS
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Routers
    app.include_router(
        blobs_router,
        prefix="/api/v1",
        tags=["blobs"],
        dependencies=[Depends(require_api_key)],
    )

    # Metrics
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("blobdriver.startup")
        if settings.STORAGE_DRIVER not in app.state.registry:
            startup_logger.error(
                "Unknown storage driver, blob routes will be unavailable."
                " [event=driver_unknown] (%s, available=%s)",
                _describe_driver(settings),
                ",".join(app.state.registry.names()),
            )
            return
        startup_logger.info(
            "Storage driver configured, it is constructed on first use."
            " [event=driver_configured] (%s)",
            _describe_driver(settings),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger = logging.getLogger("http")
        normalized_detail, code_override = _normalize_detail(exc.detail)
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            normalized_detail,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": normalized_detail,
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        return _problem(
            request,
            exc.status_code,
            "HTTP Error",
            normalized_detail,
            _resolve_error_code(exc.status_code, code_override),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _problem(
            request,
            422,
            "Validation Error",
            jsonable_encoder(exc.errors()),
            _resolve_error_code(422),
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/ready")
    def ready(request: Request):
        try:
            get_driver(request)
        except HTTPException as exc:
            detail, _ = _normalize_detail(exc.detail)
            return {"status": "not_ready", "detail": detail}
        return {"status": "ready", "driver": settings.STORAGE_DRIVER}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("blobdriver.main:app", host="0.0.0.0", port=8000, reload=True)
