"""
Centralized logging configuration using loguru.

Features:
- JSON-formatted logs for production parsing
- Request ID injection for tracing a single workflow run
- File rotation (100 MB per file) with a separate error log
- Console output with colors
"""

import sys
from pathlib import Path

from loguru import logger

from kitchen_assistant.config import settings

# Console format with request ID support
# Note: request_id defaults to "no-request-id" outside a workflow run
console_format = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | "
    "<level>{message}</level>"
)

# Configure default request_id for logs without request context
logger.configure(extra={"request_id": "no-request-id"})


def setup_logging(log_to_file: bool = True) -> None:
    """
    Replace loguru's default handler with the application handlers.

    Args:
        log_to_file: Also write rotated JSON logs under settings.LOG_DIR
    """
    logger.remove()

    logger.add(
        sys.stdout,
        format=console_format,
        level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
        colorize=True,
    )

    if not log_to_file:
        return

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    # JSON lines for log aggregation tools
    logger.add(
        log_dir / "app.log",
        format="{time} {level} {message} {extra}",
        level="DEBUG",
        rotation="100 MB",
        retention="30 days",
        compression="gz",
        serialize=True,
        enqueue=True,
    )

    logger.add(
        log_dir / "error.log",
        format="{time} {level} {message} {extra}",
        level="ERROR",
        rotation="100 MB",
        retention="30 days",
        compression="gz",
        serialize=True,
        enqueue=True,
    )
