"""Structured logging configuration."""

import logging
import sys
from pythonjsonlogger import jsonlogger


def setup_logging(debug: bool = False) -> logging.Logger:
    """Setup structured JSON logging.

    Logs go to stderr so a stdio transport can share the process.
    """
    logger = logging.getLogger("countly_mcp")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove existing handlers
    logger.handlers = []

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Set levels for third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
