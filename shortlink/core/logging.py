"""
Core logging module.

This module configures the engine logging with Loguru.
"""

import logging
import os
import sys
from typing import Optional

from loguru import logger

from shortlink.core.config import Settings, settings as default_settings


class InterceptHandler(logging.Handler):
    """
    Intercept standard logging and redirect to loguru.

    Services and repositories log through the standard library; this handler
    forwards those records to loguru's sinks.
    """

    def emit(self, record: logging.LogRecord) -> None:
        # Try to get corresponding Loguru level or use level number
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(settings: Optional[Settings] = None):
    """
    Configure engine logging using Loguru.

    Installs a stderr sink, an optional rotating file sink (JSON serialized
    when LOG_JSON is set) and intercepts standard library logging.

    Returns:
        The configured loguru logger
    """
    settings = settings or default_settings
    level = settings.LOG_LEVEL.upper()

    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=settings.LOG_FORMAT,
        backtrace=settings.DEBUG,
        diagnose=settings.DEBUG,
    )

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        log_file_path = os.path.join(settings.LOG_DIR, settings.LOG_FILENAME)

        if settings.LOG_JSON:
            logger.add(
                log_file_path,
                level=level,
                serialize=True,
                rotation=settings.LOG_ROTATION,
                retention=settings.LOG_RETENTION,
                compression="gz",
            )
        else:
            logger.add(
                log_file_path,
                level=level,
                format=settings.LOG_FORMAT,
                rotation=settings.LOG_ROTATION,
                retention=settings.LOG_RETENTION,
                compression="gz",
            )

    # Intercept standard library logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in list(logging.root.manager.loggerDict.keys()):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    # Quieten chatty libraries unless debugging
    if not settings.DEBUG:
        for log_name in ["sqlalchemy.engine", "httpx", "aiosqlite"]:
            logging.getLogger(log_name).setLevel(logging.WARNING)

    return logger
