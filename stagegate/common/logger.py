"""Logging setup for stagegate.

Components log through ``logging.getLogger(__name__)``; configuring the
``stagegate`` logger once covers the whole package.
"""

import logging
import logging.handlers
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Rotate the file log at 10MB, keeping 5 old files
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5


def setup_logger(
    name: str = "stagegate",
    log_dir: str = "/var/log/stagegate",
    level: str = "INFO",
    file_logging: bool = True,
) -> logging.Logger:
    """Attach console and, optionally, rotating file output to a logger.

    Calling again for the same name only updates the level.

    Raises:
        ValueError: If ``level`` is not a standard level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                os.path.join(log_dir, f"{name}.log"),
                maxBytes=MAX_BYTES,
                backupCount=BACKUP_COUNT,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
