"""Logger module for the order gateway."""

from logging_utils import setup_service_logger
from retail_common import config

logger = setup_service_logger("order-gateway", log_level=config.LOG_LEVEL, log_file=config.LOG_FILE)

__all__ = ["logger"]
