"""Logging configuration for the RollCall check-in service."""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from rollcall.core.config import get_settings

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# (file name, minimum level) for each rotating file under the log directory
LOG_FILES = (
    ("app.log", logging.DEBUG),
    ("errors.log", logging.ERROR),
)

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "realtime")


def _resolve_level(log_level: Optional[str]) -> int:
    if log_level:
        return getattr(logging, log_level.upper(), logging.INFO)
    settings = get_settings()
    return logging.DEBUG if settings and settings.DEBUG else logging.INFO


def _file_handlers(log_dir: Path) -> list:
    formatter = logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT)
    handlers = []
    for name, level in LOG_FILES:
        handler = RotatingFileHandler(
            filename=log_dir / name,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handlers.append(handler)
    return handlers


def setup_logging(log_level: Optional[str] = None, log_dir: Optional[Path] = Path("logs")) -> None:
    """
    Route service logs to stdout and, when ``log_dir`` is writable, to rotating files.

    Args:
        log_level: Level name overriding the DEBUG-driven default
        log_dir: Directory for rotating log files, or None for console logging only
    """
    level = _resolve_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console)

    # In containers logs go to stdout, so file logging is optional
    if log_dir is not None:
        try:
            log_dir.mkdir(exist_ok=True)
            for handler in _file_handlers(log_dir):
                root_logger.addHandler(handler)
        except (PermissionError, OSError):
            root_logger.warning("File logging not available, using console logging only")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized at {logging.getLevelName(level)} level")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module."""
    return logging.getLogger(name)
