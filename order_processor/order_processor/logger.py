"""Logger module for the order processor."""

from logging_utils import setup_service_logger
from retail_common import config

logger = setup_service_logger("order-processor", log_level=config.LOG_LEVEL, log_file=config.LOG_FILE)
