"""
Structured Logging Configuration
Version: 1.0.0

JSON logs for production, colored console logs for development.
- Service metadata on every entry
- Timing helper for API calls
"""
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog


def add_timestamp(logger, method_name, event_dict):
    """Add ISO format timestamp."""
    event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_service_info(logger, method_name, event_dict):
    """Add service metadata."""
    event_dict['service'] = os.getenv('APP_NAME', 'vehicle-marketplace-client')
    event_dict['version'] = os.getenv('APP_VERSION', 'unknown')
    event_dict['environment'] = os.getenv('APP_ENV', 'development')
    return event_dict


def rename_event_key(logger, method_name, event_dict):
    """Rename 'event' to 'message'."""
    if 'event' in event_dict:
        event_dict['message'] = event_dict.pop('event')
    return event_dict


def configure_logging(
    json_format: Optional[bool] = None,
    log_level: str = "INFO"
) -> None:
    """
    Configure structured logging for the client.

    Args:
        json_format: True for JSON lines, False for console output,
                     None to decide from APP_ENV.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if json_format is None:
        json_format = os.getenv('APP_ENV', 'development') == 'production'

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_timestamp,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        shared_processors.extend([
            add_service_info,
            rename_event_key,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ])
    else:
        shared_processors.extend([
            structlog.dev.ConsoleRenderer(colors=True)
        ])

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Booking confirmed", vehicle_id="v-1")
    """
    return structlog.get_logger(name)


class LogTimer:
    """Context manager for timing operations and logging duration."""

    def __init__(self, logger, operation: str, **extra):
        self.logger = logger
        self.operation = operation
        self.extra = extra
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now(timezone.utc)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (datetime.now(timezone.utc) - self.start_time).total_seconds() * 1000

        if exc_type:
            self.logger.warning(
                f"{self.operation} failed",
                duration_ms=round(duration_ms, 2),
                error=str(exc_val),
                **self.extra
            )
        else:
            self.logger.debug(
                f"{self.operation} completed",
                duration_ms=round(duration_ms, 2),
                **self.extra
            )

        return False
