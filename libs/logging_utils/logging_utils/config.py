"""Logging configuration module for all retail pipeline services."""

import os
import sys
from typing import Optional

from loguru import logger as loguru_logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[service]} | {name}:{function}:{line} - {message}"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("1", "true", "yes")


def setup_service_logger(
    service_name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: Optional[bool] = None,
) -> loguru_logger:
    """Configure a logger for a service with standardized settings.

    Args:
        service_name: Name of the service (e.g., 'order-gateway')
        log_level: Logging level (default: INFO)
        log_file: Optional path to a rotating log file
        serialize: Emit JSON records instead of the colored console format.
            Defaults to the LOG_JSON environment flag.

    Returns:
        logger: Configured loguru logger instance bound to the service name
    """
    if serialize is None:
        serialize = _env_flag("LOG_JSON")

    # Remove any existing handlers
    loguru_logger.remove()
    loguru_logger.configure(extra={"service": service_name})

    if serialize:
        loguru_logger.add(sys.stderr, level=log_level, serialize=True, enqueue=True)
    else:
        loguru_logger.add(
            sys.stderr,
            level=log_level,
            format=CONSOLE_FORMAT,
            colorize=True,
            enqueue=True,
            backtrace=True,
            diagnose=True,
        )

    if log_file:
        loguru_logger.add(
            log_file,
            level=log_level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="1 week",
            compression="gz",
        )

    return loguru_logger.bind(service=service_name)


def get_queue_logger(service_name: str) -> loguru_logger:
    """Get a logger for queue transport operations.

    Unlike setup_service_logger this does not touch the configured sinks, so
    transport modules can import it without resetting a service's setup.

    Args:
        service_name: Name of the service

    Returns:
        logger: Logger bound with queue context
    """
    return loguru_logger.bind(service=f"{service_name}.queue")
