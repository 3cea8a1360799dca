"""
Logging setup: colored console output plus structured JSON log files.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from pythonjsonlogger import jsonlogger

from .config import EngineSettings

LOGGER_NAME = "mcode-engine"


class ColoredFormatter(logging.Formatter):
    """Formatter with colors for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        # Copy so file handlers never see the escape codes
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
        record.msg = f"{color}{record.getMessage()}{self.RESET}"
        record.args = None
        return super().format(record)


def setup_logging(settings: Optional[EngineSettings] = None) -> logging.Logger:
    """
    Configure the engine logger.

    Console gets INFO and up (or the configured level). When a log file is
    configured, it gets everything as JSON lines, rotated daily with 7 days
    kept, and errors also go to a plain-text `.error.log` beside it.
    """
    settings = settings or EngineSettings.from_env()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, settings.log_level, logging.INFO))
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s | %(levelname)s | [%(name)s] %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if settings.log_file:
        file_handler = TimedRotatingFileHandler(
            settings.log_file, when="midnight", interval=1, backupCount=7, encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s %(lineno)d %(funcName)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        ))
        logger.addHandler(file_handler)

        error_log = settings.log_file.rsplit('.', 1)[0] + '.error.log'
        error_handler = logging.FileHandler(error_log, mode='a', encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(error_handler)

    return logger
