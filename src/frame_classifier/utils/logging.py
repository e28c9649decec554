# src/frame_classifier/utils/logging.py
"""
Logging setup for the frame classifier.

Modules log through `logging.getLogger(__name__)`; this module attaches the
handlers to the package logger:
1. Colored console output (colorama)
2. Rotating plain-text log file
3. Optional JSON-lines file for structured processing
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from colorama import init, Fore, Style

# Initialize colorama for colored output
init(autoreset=True)

PACKAGE_LOGGER = "frame_classifier"


class ColoredFormatter(logging.Formatter):
    """
    Custom formatter with colors for different log levels.
    """

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT,
    }

    def format(self, record):
        # Color a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{Style.RESET_ALL}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record):
        log_record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'logger': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        extra = getattr(record, 'extra', None)
        if isinstance(extra, dict):
            log_record.update(extra)

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def setup_logging(
    console_level: str = "INFO",
    log_dir: Optional[str] = None,
    file_level: str = "DEBUG",
    json_logs: bool = False,
    name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        console_level: Console log level
        log_dir: Directory for log files; None disables file logging
        file_level: File log level
        json_logs: Also write a JSON-lines file (requires log_dir)
        name: Logger to configure

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, console_level.upper()))
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path / f"{name}.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

        if json_logs:
            json_handler = logging.FileHandler(log_path / f"{name}_structured.jsonl")
            json_handler.setLevel(logging.INFO)
            json_handler.setFormatter(JSONFormatter())
            logger.addHandler(json_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger below the package logger."""
    if name is None or name == PACKAGE_LOGGER:
        return logging.getLogger(PACKAGE_LOGGER)
    if name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
