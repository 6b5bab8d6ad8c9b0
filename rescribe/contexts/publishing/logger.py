"""
Publishing context logger.

Provides logging interface for publishing context with automatic [publish] prefix.
All publishing modules should import from this module, not from loguru directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[publish]"


def _log_info(message: str) -> None:
    """Log info message with [publish] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [publish] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [publish] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [publish] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [publish] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")
