"""Logging configuration for the scheduler."""
import logging

from .settings import settings

HANDLER_NAME = "cpm-console"


def configure_logging(name: str = "cpm") -> logging.Logger:
    """
    Configure logging for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)

    # Repeated calls must not stack handlers
    if any(h.get_name() == HANDLER_NAME for h in logger.handlers):
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.set_name(HANDLER_NAME)
    logger.addHandler(console_handler)

    return logger
