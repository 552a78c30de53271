"""
Structured logging setup for the SMS Blossom shop store.

All runtime logging should go through structlog. This module provides a
minimal, production-friendly baseline shared by the environment guard, the
database holder and the repository.

Key principles:
- Logs are structured (JSON) and include contextual fields.
- Context can be bound per-request / per-job (e.g. shop_domain, request_id).
- Secrets (access tokens, keys) are never passed to a logger.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import structlog


def _build_shared_processors() -> list[structlog.types.Processor]:
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.EventRenamer("message"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def _stream_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_stdout: bool = True,
) -> None:
    """
    Configure structlog and the standard logging module.

    Call once at process startup. Later calls replace the root handlers.

    - When log_stdout is True (default), logs go to stdout.
    - When log_file is set, logs are also written there (parent dir created).
    - If neither is enabled, stdout is used so the process never has zero handlers.
    """

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_stdout:
        root.addHandler(_stream_handler(level))

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(file_handler)

    if not root.handlers:
        root.addHandler(_stream_handler(level))

    structlog.configure(
        processors=_build_shared_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Obtain a structured logger.

    Usage:
        from blossom.logging import get_logger, bind_shop_context

        logger = get_logger(__name__)
        bind_shop_context(shop_domain="demo.myshopify.com")
        logger.info("shop_upserted")
    """

    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_shop_context(
    *,
    shop_domain: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> Mapping[str, Any]:
    """
    Bind common context fields (shop_domain, request_id) for the current
    context. Keys with None values are dropped.
    """

    context: dict[str, Any] = {
        "shop_domain": shop_domain,
        "request_id": request_id,
        **extra,
    }
    filtered_context = {k: v for k, v in context.items() if v is not None}

    structlog.contextvars.bind_contextvars(**filtered_context)
    return filtered_context


def clear_shop_context() -> None:
    structlog.contextvars.clear_contextvars()
