"""
Centralized logging configuration.

Provides consistent logging across all components:
- Chapters
- API
- Scripts

Usage:
    from bayesreg.utils.logging import setup_logging, get_logger

    # At application startup
    setup_logging()

    # In any module
    logger = get_logger(__name__)
    logger.info("Fitting model")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from bayesreg.config import settings


ROOT_LOGGER_NAME = "bayesreg"


# =============================================================================
# Log Formatters
# =============================================================================

class ColoredFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname:8}{self.RESET}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "context"):
            log_record.update(record.context)

        return json.dumps(log_record, default=str)


# =============================================================================
# Setup Functions
# =============================================================================

_logging_configured = False


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    json_format: bool = False,
    force: bool = False,
) -> logging.Logger:
    """
    Configure application-wide logging.

    Call once at startup (CLI script, API startup, dashboard).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to config.
        log_file: Optional file path. Defaults to config.
        json_format: Emit one JSON object per line.
        force: Force reconfiguration even if already configured.

    Returns:
        Root application logger
    """
    global _logging_configured

    if _logging_configured and not force:
        return logging.getLogger(ROOT_LOGGER_NAME)

    level = level or settings.log_level
    log_file = log_file or settings.log_file

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)

    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root_logger.addHandler(file_handler)

    # Sampler and plotting libraries are chatty at INFO
    logging.getLogger("pymc").setLevel(logging.WARNING)
    logging.getLogger("pytensor").setLevel(logging.WARNING)
    logging.getLogger("arviz").setLevel(logging.WARNING)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    _logging_configured = True
    root_logger.debug("Logging configured")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger under the application namespace.

    Args:
        name: Logger name (usually __name__ or module name)

    Returns:
        Logger instance
    """
    prefix = f"{ROOT_LOGGER_NAME}."
    if name.startswith(prefix):
        name = name[len(prefix):]

    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# =============================================================================
# Context Managers
# =============================================================================

class LogContext:
    """
    Context manager for adding context to log messages.

    Usage:
        with LogContext(chapter="ch01", model="murder_lm"):
            logger.info("Sampling")  # JSON output includes context
    """

    def __init__(self, **context):
        self.context = context
        self._old_factory = None

    def __enter__(self):
        self._old_factory = logging.getLogRecordFactory()
        old_factory = self._old_factory
        context = self.context

        def factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            record.context = context
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, *args):
        logging.setLogRecordFactory(self._old_factory)
