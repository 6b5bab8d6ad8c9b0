"""
Generation context logger.

Provides logging interface for generation context with automatic [generate] prefix.
All generation modules should import from this module, not from loguru directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[generate]"


def _log_info(message: str) -> None:
    """Log info message with [generate] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [generate] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [generate] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [generate] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_provider_failure(provider_name: str, error: Exception) -> None:
    """Log a provider that was abandoned, with the status code when known."""
    status = getattr(error, "status_code", None)
    suffix = f" (HTTP {status})" if status else ""
    _log_warning(f"{provider_name} failed{suffix}: {error}")


def log_generation_source(provider_name: str, role: str, latex: str) -> None:
    """Log which provider supplied the final LaTeX."""
    _log_success(f"LaTeX supplied by {role} provider {provider_name} ({len(latex)} chars)")
    _log_debug(f"  Preview: {latex[:200]!r}")
