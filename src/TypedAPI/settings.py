# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.settings",
#   "purpose": "Pydantic v2 settings for logging, transport and worker configuration.",
#   "sections": [
#     {
#       "id": "loglevel",
#       "name": "LogLevel",
#       "anchor": "class-loglevel",
#       "kind": "class"
#     },
#     {
#       "id": "logformat",
#       "name": "LogFormat",
#       "anchor": "class-logformat",
#       "kind": "class"
#     },
#     {
#       "id": "apisettings",
#       "name": "APISettings",
#       "anchor": "class-apisettings",
#       "kind": "class"
#     },
#     {
#       "id": "get-settings",
#       "name": "get_settings",
#       "anchor": "function-get-settings",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pydantic v2 Settings for TypedAPI.

Settings are read from the environment with the ``TYPEDAPI_`` prefix and
validated once per process. They configure the ambient parts of the
pipeline (logging, the default httpx transport and the worker pool); the
request lifecycle itself is configured per request through hooks.

Example:
    >>> settings = APISettings(read_timeout_s=5)
    >>> settings.http_timeout().read
    5.0
"""

from __future__ import annotations

import hashlib
import json
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from TypedAPI.network.policy import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_METHODS,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    USER_AGENT,
)

# ============================================================================
# Enums for validated choices
# ============================================================================


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Supported log output formats."""

    CONSOLE = "console"
    JSON = "json"


# ============================================================================
# Settings
# ============================================================================


class APISettings(BaseSettings):
    """Process-level configuration for TypedAPI."""

    model_config = SettingsConfigDict(
        env_prefix="TYPEDAPI_",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: LogLevel = Field(LogLevel.INFO, description="Root logging level")
    log_format: LogFormat = Field(
        LogFormat.CONSOLE, description="Pretty console or structured JSON"
    )
    log_dir: Optional[Path] = Field(
        None, description="Directory for rotating JSONL logs (disabled when unset)"
    )
    log_max_size_mb: int = Field(100, description="Rotate JSONL log files at this size", ge=1)
    log_retention_days: int = Field(30, description="Compress, then delete, older logs", ge=1)

    default_method: str = Field("POST", description="Method used by managers by default")

    connect_timeout_s: float = Field(HTTP_CONNECT_TIMEOUT, description="Connect timeout")
    read_timeout_s: float = Field(HTTP_READ_TIMEOUT, description="Read timeout")
    write_timeout_s: float = Field(HTTP_WRITE_TIMEOUT, description="Write timeout")
    pool_timeout_s: float = Field(HTTP_POOL_TIMEOUT, description="Pool acquire timeout")
    verify_tls: bool = Field(True, description="Verify TLS certificates")
    follow_redirects: bool = Field(True, description="Let the transport follow redirects")
    trust_env: bool = Field(True, description="Honour proxy environment variables")
    user_agent: str = Field(USER_AGENT, description="User-Agent sent by the default transport")

    worker_threads: int = Field(
        0,
        description="Dedicated worker threads for off-loop phases (0 = loop default executor)",
        ge=0,
    )

    @field_validator("default_method")
    @classmethod
    def validate_default_method(cls, v: str) -> str:
        method = v.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {v!r}")
        return method

    @field_validator("connect_timeout_s", "read_timeout_s", "write_timeout_s", "pool_timeout_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v

    def http_timeout(self) -> httpx.Timeout:
        """Build the httpx timeout for the default transport."""
        return httpx.Timeout(
            connect=self.connect_timeout_s,
            read=self.read_timeout_s,
            write=self.write_timeout_s,
            pool=self.pool_timeout_s,
        )

    def config_hash(self) -> str:
        """Stable hash of the HTTP-relevant settings."""
        data = self.model_dump(
            include={
                "connect_timeout_s",
                "read_timeout_s",
                "write_timeout_s",
                "pool_timeout_s",
                "verify_tls",
                "follow_redirects",
                "trust_env",
                "user_agent",
            }
        )
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:8]

    def model_dump_redacted(self, **kwargs: Any) -> dict[str, Any]:
        """Dump settings with sensitive-looking fields redacted."""
        from TypedAPI.logging_utils import mask_sensitive_data

        return mask_sensitive_data(self.model_dump(**kwargs))


_SETTINGS: Optional[APISettings] = None
_SETTINGS_LOCK = threading.Lock()


def get_settings() -> APISettings:
    """Return the process-wide settings, loading them from the environment once."""
    global _SETTINGS
    with _SETTINGS_LOCK:
        if _SETTINGS is None:
            _SETTINGS = APISettings()
        return _SETTINGS


def reset_settings() -> None:
    """Forget cached settings (for testing)."""
    global _SETTINGS
    with _SETTINGS_LOCK:
        _SETTINGS = None


__all__ = [
    "APISettings",
    "LogLevel",
    "LogFormat",
    "get_settings",
    "reset_settings",
]
