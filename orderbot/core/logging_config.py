# orderbot/core/logging_config.py

import logging
import sys
from typing import Optional

from loguru import logger

from orderbot.core.config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)

# stdlib loggers owned by the domain services
DOMAIN_LOGGERS = (
    "conversation_service",
    "order_workflow",
    "event_router",
    "notification_service",
    "session_manager",
    "cart_service",
    "vendor_assignment",
)

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: Optional[str] = None) -> None:
    """
    Route everything through loguru: our own loguru calls in the
    infrastructure layer, plus stdlib logging from the domain services,
    uvicorn and sqlalchemy.
    """
    level = (level or settings.LOG_LEVEL).upper()

    logger.remove()
    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level,
        colorize=True,
        backtrace=False,
        diagnose=settings.ENVIRONMENT == "dev",
    )

    handler = InterceptHandler()
    logging.basicConfig(handlers=[handler], level=logging.getLevelName(level), force=True)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = [handler]
    for name in DOMAIN_LOGGERS:
        logging.getLogger(name).setLevel(level)
    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    logger.info("Logging configured at {} ({})", level, settings.ENVIRONMENT)
