from __future__ import annotations

import os

import pytest

from blobdriver.common import config
from blobdriver.common.config import get_settings

_SETTINGS_ENV = (
    "STORAGE_DRIVER",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "S3_REGION",
    "S3_BUCKET",
    "S3_ENCRYPT",
    "S3_ENDPOINT_URL",
    "S3_ADDRESSING_STYLE",
    "S3_MIN_CHUNK_SIZE",
    "S3_MAX_PARTS",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "ENABLE_METRICS",
    "API_KEY_ENABLED",
    "API_KEY",
    "CORS_ENABLED",
    "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Start every test from default settings and a fresh settings cache.

    The .env loader writes straight into os.environ, so the environment is
    restored from a snapshot afterwards.
    """
    saved = dict(os.environ)
    for name in _SETTINGS_ENV:
        os.environ.pop(name, None)
    monkeypatch.setattr(config, "ENV_FILE", tmp_path / ".env")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    os.environ.clear()
    os.environ.update(saved)
    get_settings.cache_clear()  # type: ignore[attr-defined]
