"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from loguru directly.
"""

from pathlib import Path

from loguru import logger

CONTEXT_PREFIX = "[render]"

# Error and warning lines echoed at INFO/DEBUG before truncating
ERROR_LIMIT = 5
WARNING_LIMIT = 3


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [render] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_compilation_start(job_id: str, compiler: str, working_dir: Path) -> None:
    """Log start of compilation with context."""
    _log_info(f"Starting compilation: job {job_id}")
    _log_debug(f"  Compiler: {compiler}")
    _log_debug(f"  Working directory: {working_dir}")


def log_compilation_result(job_id: str, outcome, elapsed_time: float) -> None:
    """
    Log compilation outcome with diagnostics.

    Args:
        job_id: Compilation job identifier
        outcome: CompilationOutcome from compile_latex()
        elapsed_time: Time taken to compile
    """
    if outcome.success:
        _log_success(f"Job {job_id}: compiled with {len(outcome.warnings)} warnings ({elapsed_time:.2f}s)")
        if outcome.pdf_path:
            _log_debug(f"  PDF: {outcome.pdf_path}")
        if outcome.page_count and outcome.page_count > 1:
            _log_warning(f"Job {job_id}: PDF has {outcome.page_count} pages, expected one")
    else:
        _log_error(f"Job {job_id}: compilation failed with {len(outcome.errors)} errors ({elapsed_time:.2f}s)")
        for i, err in enumerate(outcome.errors[:ERROR_LIMIT], 1):
            _log_error(f"  Error {i}: {err}")
        if len(outcome.errors) > ERROR_LIMIT:
            _log_error(f"  ... and {len(outcome.errors) - ERROR_LIMIT} more errors")

    for i, warn in enumerate(outcome.warnings[:WARNING_LIMIT], 1):
        _log_debug(f"  Warning {i}: {warn}")

    # Raw output bypasses the format template so multi-line logs stay readable
    if not outcome.success:
        if outcome.stdout:
            logger.opt(raw=True).debug(
                f"\n{'=' * 80}\nCOMPILER STDOUT:\n{'=' * 80}\n{outcome.stdout}\n"
            )
        if outcome.stderr:
            logger.opt(raw=True).debug(
                f"\n{'=' * 80}\nCOMPILER STDERR:\n{'=' * 80}\n{outcome.stderr}\n"
            )
