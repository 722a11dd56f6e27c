import logging
import sys
import os
from logging.handlers import RotatingFileHandler

from config import get_logging_config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_logs_dir() -> str:
    """XP_LOG_DIR when set, otherwise backend/logs. Created on demand."""
    logs_dir = get_logging_config().dir or os.path.join(os.path.dirname(__file__), "logs")
    os.makedirs(logs_dir, exist_ok=True)
    return logs_dir


class CustomFormatter(logging.Formatter):
    """Level-colored console output with the source location appended"""

    COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[34;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self, use_color: bool = True):
        super().__init__(datefmt=DATE_FORMAT)
        fmt = LOG_FORMAT + " (%(filename)s:%(lineno)d)"
        self._formatters = {
            level: logging.Formatter(
                color + fmt + self.RESET if use_color else fmt, datefmt=DATE_FORMAT
            )
            for level, color in self.COLORS.items()
        }
        self._plain = logging.Formatter(fmt, datefmt=DATE_FORMAT)

    def format(self, record):
        return self._formatters.get(record.levelno, self._plain).format(record)


def setup_logger(name: str = "XPSystem", level: int = None) -> logging.Logger:
    """Configures and returns a logger instance"""
    config = get_logging_config()
    if level is None:
        level = getattr(logging, config.level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers if function is called multiple times
    if logger.handlers:
        return logger

    # Colors only when a terminal is attached
    use_color = config.color and sys.stdout.isatty()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(CustomFormatter(use_color))
    logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        os.path.join(resolve_logs_dir(), config.file_name),
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Global logger instance
logger = setup_logger()
