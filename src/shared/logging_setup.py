"""Logging setup for the Portfolio Health Check."""

import logging
import sys

from src.shared.config import LOG_LEVEL

_HANDLER_NAME = "health-check-stdout"


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure logging to output to stdout with proper formatting.

    Safe to call more than once: the stdout handler is only added once.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    if not any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # Flytekit is chatty at INFO
    logging.getLogger("flytekit").setLevel(logging.WARNING)
