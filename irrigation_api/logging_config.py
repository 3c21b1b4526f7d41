"""Logging configuration for the irrigation API."""

import logging

from irrigation_api.database import settings


def setup_logging() -> None:
    """Configure the root logger with a console handler."""
    root_logger = logging.getLogger()
    if getattr(root_logger, "_irrigation_configured", False):
        return

    # Format: timestamp - level - logger - message
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)
    root_logger._irrigation_configured = True

    # Quiet down noisy libraries
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("paho").setLevel(logging.WARNING)

    logging.info(f"Logging initialized - level: {settings.log_level.upper()}")
