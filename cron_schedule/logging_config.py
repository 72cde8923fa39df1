"""Logging setup for processes hosting a scheduler."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from cron_schedule.config import LoggingConfig

DEBUG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def setup_logging(
    config: Optional[LoggingConfig] = None,
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the root logger.

    The flags win over config.level: debug selects DEBUG, verbose INFO,
    quiet ERROR.

    Args:
        config: Logging configuration (level, format, optional rotating file)
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging
        quiet: Suppress console output below ERROR
    """
    config = config or LoggingConfig()

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.getLevelName(str(config.level).upper())
        if not isinstance(level, int):
            level = logging.INFO

    format_str = DEBUG_FORMAT if debug else config.format

    handlers: list[logging.Handler] = []

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
        )
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        handlers.append(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        handlers.append(console_handler)
    elif not config.file:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging.DEBUG if config.file else level,
        format=format_str,
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: level={logging.getLevelName(level)}, debug={debug}")
