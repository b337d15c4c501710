"""Structured logging configuration."""

import sys
import structlog
import logging
from pathlib import Path
from typing import Optional

from tiered_cache.core.config import CacheSettings


def configure_logging(settings: CacheSettings) -> None:
    """Configure structured logging based on settings."""
    level = getattr(logging, settings.log_level.upper())
    handlers = [logging.StreamHandler(sys.stdout)]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
        processors.insert(0, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None,
                        tier: Optional[str] = None, **kwargs) -> None:
    """Log one tier-level cache event at debug level.

    `operation` is one of get/set/delete/invalidate/evict; `key` is the caller
    key or invalidation pattern. A get carries `hit` and, on a hit, the tier
    that served it ("memory" or "durable"). Evictions always name the memory
    tier since the durable tier is only bounded by its quota.
    """
    if operation == "evict":
        tier = "memory"

    event = {"key": key}
    if hit is not None:
        event["outcome"] = "hit" if hit else "miss"
    if tier is not None:
        event["tier"] = tier

    logger.debug(f"cache.{operation}", **event, **kwargs)
