"""
Logging setup for the TDMS service.
Console output always, plus a rotating file when LOG_DIR is configured.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from tdms.config import LOG_DIR, LOG_LEVEL

LOGGER_NAME = "tdms"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

logger = logging.getLogger(LOGGER_NAME)


def setup_logger(log_dir: str = LOG_DIR, level: str = LOG_LEVEL) -> logging.Logger:
    """
    Configure the application logger.
    Safe to call more than once; handlers are only attached the first time.
    """
    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(getattr(logging, level, logging.INFO))

    if app_logger.handlers:
        return app_logger

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "tdms.log"),
            maxBytes=1024 * 1024,  # 1 MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    return app_logger
