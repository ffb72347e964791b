"""loguru sinks for the CLI, with stdlib logging routed into them.

Library modules only ever use ``logging.getLogger(__name__)``; calling
``configure_logging`` once at startup decides where those records end up.
"""

import logging
import sys
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_LOG_FILENAME = "makanx-map.log"
DEFAULT_ROTATION = "10 MB"
DEFAULT_RETENTION = 20  # files

RotationRule = str | int | float | timedelta | Callable[[Any, Any], bool]
RetentionRule = str | int | float | timedelta | Callable[[list[Any]], Any]

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name} | {message}"


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real call site
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def log_file_path(log_dir: Path | str) -> Path:
    return Path(log_dir) / DEFAULT_LOG_FILENAME


def configure_logging(
    log_dir: Path | None,
    console_level: str = "INFO",
    console_json: bool = False,
    rotation: RotationRule | None = None,
    retention: RetentionRule | None = None,
) -> Path | None:
    """Install the console sink and, when ``log_dir`` is set, a JSON file sink.

    Args:
        log_dir: Directory for ``makanx-map.log``; None disables file logging.
        console_level: Minimum console level (DEBUG, INFO, ...).
        console_json: Serialize console records as JSON instead of colored text.
        rotation: loguru rotation rule; defaults to 10 MB.
        retention: loguru retention rule; defaults to keeping 20 files.

    Returns:
        The log file path, or None when file logging is off or unavailable.
    """
    logger.remove()

    console: dict[str, Any] = {
        "level": console_level.upper(),
        "serialize": console_json,
        "backtrace": False,
        "diagnose": False,
    }
    if not console_json:
        console["format"] = CONSOLE_FORMAT
    logger.add(sys.stderr, **console)

    log_file: Path | None = None
    if log_dir is not None:
        try:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error(f"Cannot create log directory {log_dir}: {exc}")
        else:
            log_file = log_file_path(log_dir)
            logger.add(
                log_file,
                level="DEBUG",
                serialize=True,
                rotation=rotation if rotation is not None else DEFAULT_ROTATION,
                retention=retention if retention is not None else DEFAULT_RETENTION,
                backtrace=False,
                diagnose=False,
            )
            logger.info(f"Writing logs to {log_file}")

    logging.basicConfig(handlers=[InterceptHandler()], level=logging.NOTSET, force=True)
    logging.captureWarnings(True)
    return log_file
