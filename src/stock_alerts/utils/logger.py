"""
Logging for Stock Alerts.

Every module logs through a child of the ``stock_alerts`` logger. Only that
package logger carries handlers: a colored console stream and a rotating
file in LOG_DIR. LOG_LEVEL and DEBUG_MODE are read when the handlers are
installed, so ``setup_logging()`` after changing the environment applies the
new settings to every module.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import colorlog

PACKAGE_LOGGER = "stock_alerts"
LOG_FILE_NAME = "stock_alerts.log"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

_configured = False


def _message_format(debug_mode: bool) -> str:
    origin = "%(name)s.%(funcName)s:%(lineno)d" if debug_mode else "%(name)s"
    return f"%(asctime)s [%(levelname)8s] {origin} - %(message)s"


def _console_handler(debug_mode: bool) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s" + _message_format(debug_mode),
        datefmt=DATE_FORMAT,
        log_colors=LOG_COLORS,
    ))
    return handler


def _file_handler(log_dir: str, debug_mode: bool) -> Optional[logging.Handler]:
    """Rotating file handler, or None when the directory cannot be created."""
    try:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Log directory {log_dir} unavailable, file logging disabled: {e}", file=sys.stderr)
        return None

    handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
        delay=True,
    )
    handler.setFormatter(logging.Formatter(_message_format(debug_mode), datefmt=DATE_FORMAT))
    return handler


def configure_package_logger() -> logging.Logger:
    """(Re)install handlers on the package logger from the current environment."""
    global _configured

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    debug_mode = os.getenv("DEBUG_MODE", "false").lower() == "true"
    log_dir = os.getenv("LOG_DIR", "./logs")

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.addHandler(_console_handler(debug_mode))
    file_handler = _file_handler(log_dir, debug_mode)
    if file_handler is not None:
        package_logger.addHandler(file_handler)

    package_logger.propagate = False
    _configured = True
    return package_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for a module of this package.

    Names outside ``stock_alerts`` are nested under it so they share the
    package handlers. Handlers are installed on first use.
    """
    if not _configured:
        configure_package_logger()

    if not name or name == "__main__":
        name = PACKAGE_LOGGER
    elif name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    return logging.getLogger(name)


def setup_logging() -> None:
    """Apply LOG_LEVEL, LOG_DIR and DEBUG_MODE; call once at startup."""
    logger = configure_package_logger()
    logger.debug(f"Logging initialized at {logging.getLevelName(logger.level)}")
