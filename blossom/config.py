"""
Environment-based configuration for the SMS Blossom shop store.

This module exposes a small, typed configuration surface shared by the
environment guard, the database holder and the shop repository. All values
are sourced from environment variables; secrets have no defaults and must be
provided via the environment (or python-dotenv in local development).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping, Optional
from urllib.parse import urlparse

QueueDriver = Literal["memory", "redis"]

QUEUE_DRIVERS = ("memory", "redis")
DEFAULT_PORT = 8080

_TRUE_VALUES = {"1", "true", "t", "yes", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "off"}

# Keys that must be present (and non-empty) in strict mode.
REQUIRED_KEYS = (
    "APP_URL",
    "DATABASE_URL",
    "SHOPIFY_API_KEY",
    "SHOPIFY_API_SECRET",
    "SHOPIFY_SCOPES",
    "WEBHOOK_SECRET",
    "JWT_SECRET",
    "ENCRYPTION_KEY",
    "MITTO_API_URL",
    "MITTO_API_KEY",
)


class ConfigError(Exception):
    """Raised when the environment does not satisfy the configuration schema."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


@dataclass(frozen=True)
class AppConfig:
    """
    Top-level application configuration.

    Required secrets are Optional here so that lenient loading (used by the
    database holder and the repository) works with a partial environment.
    The environment guard loads the same dataclass in strict mode.
    """

    app_url: Optional[str]
    port: int
    node_env: str

    database_url: Optional[str]

    shopify_api_key: Optional[str]
    shopify_api_secret: Optional[str]
    shopify_scopes: Optional[str]
    webhook_secret: Optional[str]
    jwt_secret: Optional[str]
    # 32-byte key, hex or base64 encoded.
    encryption_key: Optional[str]

    mitto_api_url: Optional[str]
    mitto_api_key: Optional[str]

    queue_driver: QueueDriver
    redis_url: str
    pcd_approved: bool

    log_level: str
    log_file: Optional[str]
    log_stdout: bool

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        strict: bool = False,
    ) -> "AppConfig":
        """
        Construct configuration from environment variables.

        Malformed typed values (URL, port, boolean, enumerated choice) are
        always rejected. With ``strict=True`` missing required keys and the
        QUEUE_DRIVER/REDIS_URL pairing are rejected as well. Every violation
        is collected and raised together as a single `ConfigError`.
        """

        env = os.environ if environ is None else environ
        errors: list[str] = []

        def _str(name: str, default: Optional[str] = None) -> Optional[str]:
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            return raw

        def _url(name: str) -> Optional[str]:
            raw = _str(name)
            if raw is None:
                return None
            parsed = urlparse(raw)
            if not parsed.scheme or not parsed.netloc:
                errors.append(f"{name}: invalid url")
                return None
            return raw

        def _port(name: str, default: int) -> int:
            raw = _str(name)
            if raw is None:
                return default
            try:
                value = int(raw.strip())
            except ValueError:
                errors.append(f"{name}: invalid port number")
                return default
            if not 1 <= value <= 65535:
                errors.append(f"{name}: port out of range")
                return default
            return value

        def _bool(name: str, default: bool) -> bool:
            raw = _str(name)
            if raw is None:
                return default
            lowered = raw.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            errors.append(f"{name}: invalid boolean")
            return default

        def _choice(name: str, choices: tuple[str, ...], default: str) -> str:
            raw = _str(name, default)
            if raw not in choices:
                errors.append(f"{name}: value not in choices {list(choices)}")
                return default
            return raw

        config = cls(
            app_url=_url("APP_URL"),
            port=_port("PORT", DEFAULT_PORT),
            node_env=_str("NODE_ENV", "development"),
            database_url=_str("DATABASE_URL"),
            shopify_api_key=_str("SHOPIFY_API_KEY"),
            shopify_api_secret=_str("SHOPIFY_API_SECRET"),
            shopify_scopes=_str("SHOPIFY_SCOPES"),
            webhook_secret=_str("WEBHOOK_SECRET"),
            jwt_secret=_str("JWT_SECRET"),
            encryption_key=_str("ENCRYPTION_KEY"),
            mitto_api_url=_url("MITTO_API_URL"),
            mitto_api_key=_str("MITTO_API_KEY"),
            queue_driver=_choice("QUEUE_DRIVER", QUEUE_DRIVERS, "memory"),  # type: ignore[arg-type]
            redis_url=_str("REDIS_URL", ""),
            pcd_approved=_bool("PCD_APPROVED", False),
            log_level=_str("LOG_LEVEL", "INFO"),
            log_file=_str("LOG_FILE"),
            log_stdout=_bool("LOG_STDOUT", True),
        )

        if strict:
            for name in REQUIRED_KEYS:
                if _str(name) is None:
                    errors.append(f"{name}: missing required environment variable")
            if config.queue_driver == "redis" and not config.redis_url:
                errors.append("QUEUE_DRIVER=redis but REDIS_URL is empty")

        if errors:
            raise ConfigError(errors)
        return config


def get_config() -> AppConfig:
    """
    Helper to obtain the current configuration.

    Loads leniently: missing secrets come back as None and are reported by
    whichever component needs them. Run `blossom.check_env` at boot for the
    full validation.
    """

    return AppConfig.from_env()
