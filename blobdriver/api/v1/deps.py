from __future__ import annotations

import logging
import threading

from fastapi import Header, HTTPException, Request

from blobdriver.common.config import get_settings
from blobdriver.infra.storage.client import StorageError
from blobdriver.storagedriver.base import StorageDriver
from blobdriver.storagedriver.errors import StorageDriverError

logger = logging.getLogger("http")

_driver_lock = threading.Lock()


def get_driver(request: Request) -> StorageDriver:
    """Return the app's storage driver, constructing it on first use."""
    state = request.app.state
    driver = getattr(state, "driver", None)
    if driver is not None:
        return driver

    with _driver_lock:
        driver = getattr(state, "driver", None)
        if driver is None:
            settings = get_settings()
            try:
                driver = state.registry.create(
                    settings.STORAGE_DRIVER, settings.driver_parameters()
                )
            except (StorageDriverError, StorageError) as exc:
                logger.error(
                    "driver_unavailable driver=%s error=%s",
                    settings.STORAGE_DRIVER,
                    exc,
                )
                raise HTTPException(
                    status_code=503,
                    detail={
                        "message": str(exc),
                        "error_code": "driver_unavailable",
                    },
                ) from exc
            state.driver = driver
    return driver


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if settings.API_KEY_ENABLED:
        api_key_expected = getattr(settings, "API_KEY", None)
        if not x_api_key or (api_key_expected and x_api_key != api_key_expected):
            raise HTTPException(status_code=401, detail="Invalid API key")
