"""
Configuration management for SecureAPI
Reads service settings from the environment (and a local .env file)
"""
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from secureapi.core.exceptions import ConfigurationError
from secureapi.core.quota import (
    DEFAULT_LIMIT,
    DEFAULT_RESERVATION_TTL_SECONDS,
    DEFAULT_WINDOW_SECONDS,
)

DEFAULT_CLIENT_IP_HEADERS = ("x-nf-client-connection-ip", "x-forwarded-for", "x-real-ip")


@dataclass
class Settings:
    """SecureAPI service settings"""
    quota_limit: int = DEFAULT_LIMIT
    quota_window_seconds: int = DEFAULT_WINDOW_SECONDS
    reservation_ttl_seconds: int = DEFAULT_RESERVATION_TTL_SECONDS
    quota_fail_open: bool = False
    redis_url: Optional[str] = None
    max_upload_bytes: int = 50 * 1024 * 1024
    max_entry_bytes: int = 2 * 1024 * 1024
    client_ip_headers: Tuple[str, ...] = field(default=DEFAULT_CLIENT_IP_HEADERS)
    patterns_file: Optional[str] = None
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, hiding credentials embedded in the Redis URL"""
        data = asdict(self)
        if self.redis_url and "@" in self.redis_url:
            data["redis_url"] = self.redis_url.split("@")[-1]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create from dictionary"""
        return cls(**data)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from SECUREAPI_* environment variables.

        Args:
            dotenv: Load a .env file from the working directory first

        Raises:
            ConfigurationError: If a numeric setting is not an integer
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        return cls(
            quota_limit=_int_env("SECUREAPI_QUOTA_LIMIT", DEFAULT_LIMIT),
            quota_window_seconds=_int_env("SECUREAPI_QUOTA_WINDOW_SECONDS", DEFAULT_WINDOW_SECONDS),
            reservation_ttl_seconds=_int_env(
                "SECUREAPI_RESERVATION_TTL_SECONDS", DEFAULT_RESERVATION_TTL_SECONDS
            ),
            quota_fail_open=_bool_env("SECUREAPI_QUOTA_FAIL_OPEN", False),
            redis_url=os.getenv("REDIS_URL") or None,
            max_upload_bytes=_int_env("SECUREAPI_MAX_UPLOAD_BYTES", cls.max_upload_bytes),
            max_entry_bytes=_int_env("SECUREAPI_MAX_ENTRY_BYTES", cls.max_entry_bytes),
            client_ip_headers=_list_env("SECUREAPI_CLIENT_IP_HEADERS", DEFAULT_CLIENT_IP_HEADERS),
            patterns_file=os.getenv("SECUREAPI_PATTERNS_FILE") or None,
            log_level=os.getenv("SECUREAPI_LOG_LEVEL", "INFO").upper(),
            cors_origins=_list_env("CORS_ORIGINS", ("*",), lower=False),
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _list_env(name: str, default: Tuple[str, ...], lower: bool = True) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return tuple(item.lower() for item in items) if lower else tuple(items)
