"""Logging utilities for the retail order pipeline services."""

from .config import get_queue_logger, setup_service_logger

__version__ = "0.1.0"

__all__ = [
    "setup_service_logger",
    "get_queue_logger",
]
