"""
Preview context logger.

Provides logging interface for the preview context with automatic [preview] prefix.
"""

from loguru import logger

CONTEXT_PREFIX = "[preview]"


def _log_info(message: str) -> None:
    """Log info message with [preview] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [preview] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def _log_exception(message: str) -> None:
    """Log error message with traceback and [preview] prefix."""
    logger.exception(f"{CONTEXT_PREFIX} {message}")
