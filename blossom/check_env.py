"""
Boot-time environment guard.

Validates the process environment against the configuration schema and
exits non-zero when it does not hold. Run it before starting the app:

    blossom-check-env
    python -m blossom.check_env
"""

from __future__ import annotations

import logging
import sys
from typing import Mapping, Optional

from dotenv import load_dotenv

from blossom.config import AppConfig, ConfigError
from blossom.crypto import EncryptionError, decode_key
from blossom.logging import configure_logging, get_logger

TAG = "[env:check]"
MIN_JWT_SECRET_LENGTH = 24


def advisory_warnings(config: AppConfig) -> list[str]:
    """Non-fatal findings for a configuration that already passed validation."""
    warnings: list[str] = []

    if config.app_url and not config.app_url.startswith("https://") and not config.is_development:
        warnings.append("APP_URL is not https in non-dev mode")

    if config.jwt_secret and len(config.jwt_secret) < MIN_JWT_SECRET_LENGTH:
        warnings.append(f"JWT_SECRET is shorter than {MIN_JWT_SECRET_LENGTH} characters")

    if config.encryption_key:
        try:
            decode_key(config.encryption_key)
        except EncryptionError as e:
            warnings.append(str(e))

    return warnings


def _log_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _configure_logging_from_env(environ: Optional[Mapping[str, str]]) -> None:
    # Malformed values are reported by the strict pass; log with defaults meanwhile.
    try:
        config = AppConfig.from_env(environ)
    except ConfigError:
        configure_logging(level=logging.INFO)
        return

    configure_logging(
        level=_log_level(config.log_level),
        log_file=config.log_file,
        log_stdout=config.log_stdout,
    )


def main(environ: Optional[Mapping[str, str]] = None) -> None:
    """Validate the environment, then exit 0 (valid) or 1 (invalid)."""
    if environ is None:
        load_dotenv()

    _configure_logging_from_env(environ)
    logger = get_logger(__name__)

    try:
        config = AppConfig.from_env(environ, strict=True)
    except ConfigError as e:
        logger.error("env_check_failed", errors=e.errors)
        print(f"{TAG} FAILED: {e}", file=sys.stderr)
        sys.exit(1)

    for warning in advisory_warnings(config):
        logger.warning("env_check_warning", detail=warning)
        print(f"{TAG} WARNING: {warning}", file=sys.stderr)

    logger.info("env_check_ok", node_env=config.node_env, queue_driver=config.queue_driver)
    print(f"{TAG} OK")
    sys.exit(0)


if __name__ == "__main__":
    main()
