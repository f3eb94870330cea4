"""Application configuration via pydantic-settings."""

import logging
from pathlib import Path
from typing import Optional

import httpx
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from frontend_server.errors import ConfigurationError

# Package directory (where this file lives: frontend_server/config.py)
_PACKAGE_DIR = Path(__file__).resolve().parent

# Bundled SPA build, replaced by the real `vite build` output at deploy time
_DEFAULT_DIST = _PACKAGE_DIR / "dist"

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
    )

    # Listening socket
    FRONTEND_PORT: int = Field(5173, ge=1, le=65535)
    FRONTEND_HOST: str = "0.0.0.0"

    # Upstream API origin, everything under /api/ is forwarded here
    BACKEND_URL: str = "http://localhost:8080"

    # Static bundle
    DIST_DIR: Path = _DEFAULT_DIST
    SPA_FALLBACK: bool = True

    # Seconds; None leaves backend calls without a deadline
    PROXY_TIMEOUT: Optional[float] = Field(None, gt=0)

    LOG_LEVEL: str = "info"

    @field_validator("BACKEND_URL")
    @classmethod
    def _check_backend_url(cls, value: str) -> str:
        value = value.strip()
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"cannot parse {value!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(
                f"{value!r} is not an absolute http(s) URL, "
                "expected something like http://localhost:8080"
            )
        if url.query or url.fragment:
            raise ValueError(f"{value!r} must not carry a query string or fragment")
        return value.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in _LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(_LOG_LEVELS)}")
        return value

    @property
    def backend_origin(self) -> str:
        return self.BACKEND_URL

    @property
    def listen_url(self) -> str:
        """URL printed at startup; the socket itself binds FRONTEND_HOST."""
        return f"http://localhost:{self.FRONTEND_PORT}"

    @property
    def log_level(self) -> int:
        return logging.getLevelName(self.LOG_LEVEL.upper())


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, turning validation failures into
    a ConfigurationError that names the offending variable."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"Invalid {'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(problems) from e
