"""Structured logging setup using structlog"""

import logging
import os
import sys
from typing import Any

import structlog

from dochub.config import settings

# Loggers from the storage and scheduling stack that are noisy below ERROR
QUIET_LOGGERS = (
    "apscheduler",
    "aiohttp",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "asyncio",
)


def configure_third_party_loggers(log_level: int):
    """Keep library loggers at ERROR, or WARNING when DocHub runs at DEBUG"""
    level = logging.WARNING if log_level <= logging.DEBUG else logging.ERROR
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(level)


def configure_logging():
    """Configure structured logging with environment-aware settings"""

    if settings.environment == "production" and not os.getenv("LOG_LEVEL"):
        # Force ERROR in production unless explicitly set
        log_level = logging.ERROR
    else:
        log_level = getattr(logging, settings.log_level.upper(), logging.ERROR)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    configure_third_party_loggers(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a logger instance"""
    return structlog.get_logger(name)


def log_backend_config(logger: Any, config: Any) -> None:
    """
    Log the active data backend without exposing credentials.

    Args:
        logger: Logger instance
        config: Settings object with backend configuration
    """
    if config.storage_backend == "local":
        logger.info(
            "backend_config_loaded",
            backend="local",
            database=config.database_url.split("/")[-1],
            key_prefix=config.storage_key_prefix,
            watch_enabled=config.storage_watch_enabled,
            watch_interval_seconds=config.storage_watch_interval,
        )
        return

    logger.info(
        "backend_config_loaded",
        backend="remote",
        api_url=config.remote_api_url,
        token="[REDACTED]" if config.remote_api_token else "[NOT_SET]",
        timeout_seconds=config.remote_timeout,
    )


# Configure logging on import
configure_logging()
