"""
Logging setup for the service role.

The service logs to a daily rotated file in its home directory and, when
attached to a terminal (or ZEROTIER_LOG_CONSOLE=1), mirrors the log to stderr.
The control client and identity tool never configure file logging; their
output goes straight to stdout/stderr.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file: Path, level: str = "INFO", console: bool = False) -> list[logging.Handler]:
    """Setup logging for the service.

    Args:
        log_file: Path of the service log file (its directory must exist)
        level: Log level name (DEBUG, INFO, WARNING, ...)
        console: Also log to stderr

    Returns:
        The handlers added to the root logger, for shutdown_logging()
    """
    numeric_level = getattr(logging, level, logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger()
    logger.setLevel(numeric_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: list[logging.Handler] = []

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        handlers.append(console_handler)

    try:
        # Rotates daily at midnight, keeping 2 days of backups
        file_handler = TimedRotatingFileHandler(
            str(log_file),
            when="midnight",
            interval=1,
            backupCount=2,
            utc=False,
        )
    except OSError as e:
        logging.warning(f"Unable to open log file {log_file}: {e}")
        return handlers
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    handlers.append(file_handler)
    return handlers


def shutdown_logging(handlers: list[logging.Handler]) -> None:
    """Detach and close handlers previously installed by setup_logging()."""
    logger = logging.getLogger()
    for handler in handlers:
        logger.removeHandler(handler)
        try:
            handler.close()
        except OSError:
            pass
