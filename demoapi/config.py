"""
Centralized application configuration.

All settings are driven by environment variables with sensible defaults.
Uses Pydantic BaseSettings for validation and type coercion.

Durations accept Go-style strings (``300ms``, ``15s``, ``1m30s``) or a
plain number of seconds. An unparseable duration falls back to the field
default instead of failing startup.
"""

import logging
import re
from functools import lru_cache
from typing import Annotated, Any

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str | float | int) -> float:
    """
    Convert a duration into seconds.

    Raises ``ValueError`` when the value is neither a number nor a
    sequence of ``<number><unit>`` parts.
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def split_origins(value: str) -> list[str]:
    """Split a comma-separated list, trimming spaces and dropping empties."""
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Application ---
    app_name: str = "demo-web-service"
    app_env: str = "development"  # development | production
    log_level: str | None = None  # overrides the level derived from app_env
    test_mode: bool = False  # disables fault injection

    # --- Server ---
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    read_timeout: float = 15.0
    write_timeout: float = 15.0
    idle_timeout: float = 60.0
    shutdown_timeout: float = 15.0

    # --- CORS ---
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator(
        "read_timeout", "write_timeout", "idle_timeout", "shutdown_timeout",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, (str, int, float)):
            return value
        try:
            return parse_duration(value)
        except ValueError:
            default = cls.model_fields[info.field_name].default
            logger.warning(
                "Invalid duration, using default | field=%s | value=%r | default=%ss",
                info.field_name,
                value,
                default,
            )
            return default

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return split_origins(value)
        return value

    @property
    def effective_log_level(self) -> int:
        """Explicit LOG_LEVEL wins; otherwise INFO in production, DEBUG elsewhere."""
        if self.log_level:
            return getattr(logging, self.log_level.upper(), logging.INFO)
        if self.app_env == "production":
            return logging.INFO
        return logging.DEBUG


@lru_cache
def get_settings() -> Settings:
    """
    Return a cached Settings instance.

    Using lru_cache ensures we only read env vars once, and the same
    Settings object is reused across the application lifetime.
    """
    return Settings()
