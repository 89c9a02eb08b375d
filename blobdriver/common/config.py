from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_MIN_CHUNK_SIZE = 5 * 1024 * 1024
DEFAULT_MAX_PARTS = 1000


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    STORAGE_DRIVER: str = "s3"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_REGION: str = "us-east-1"
    S3_BUCKET: str | None = None
    S3_ENCRYPT: bool = False
    S3_ENDPOINT_URL: str | None = None
    S3_ADDRESSING_STYLE: str = "path"
    S3_MIN_CHUNK_SIZE: int = DEFAULT_MIN_CHUNK_SIZE
    S3_MAX_PARTS: int = DEFAULT_MAX_PARTS
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = None
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.S3_MIN_CHUNK_SIZE <= 0:
            raise ValueError("S3_MIN_CHUNK_SIZE must be a positive number of bytes.")
        if self.S3_MAX_PARTS <= 0:
            raise ValueError("S3_MAX_PARTS must be a positive number.")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            STORAGE_DRIVER=os.environ.get("STORAGE_DRIVER", cls.STORAGE_DRIVER),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_BUCKET=os.environ.get("S3_BUCKET"),
            S3_ENCRYPT=_as_bool(os.environ.get("S3_ENCRYPT"), cls.S3_ENCRYPT),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL"),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_MIN_CHUNK_SIZE=int(
                os.environ.get("S3_MIN_CHUNK_SIZE", cls.S3_MIN_CHUNK_SIZE)
            ),
            S3_MAX_PARTS=int(os.environ.get("S3_MAX_PARTS", cls.S3_MAX_PARTS)),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_FORMAT=os.environ.get("LOG_FORMAT", cls.LOG_FORMAT).lower(),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
        )

    def driver_parameters(self) -> dict[str, str]:
        """Render the construction parameters of the configured driver."""
        parameters = {
            "accesskey": self.S3_ACCESS_KEY_ID or "",
            "secretkey": self.S3_SECRET_ACCESS_KEY or "",
            "region": self.S3_REGION,
            "bucket": self.S3_BUCKET or "",
            "encrypt": "true" if self.S3_ENCRYPT else "false",
            "addressingstyle": self.S3_ADDRESSING_STYLE,
            "minchunksize": str(self.S3_MIN_CHUNK_SIZE),
            "maxparts": str(self.S3_MAX_PARTS),
        }
        if self.S3_ENDPOINT_URL:
            parameters["endpoint"] = self.S3_ENDPOINT_URL
        return parameters


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
