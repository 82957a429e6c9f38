"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from loguru directly.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from quire.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[render]"


def setup_rendering_logger(
    log_dir: Path, root: Optional[Path] = None, console_level: str = "INFO"
) -> Path:
    """
    Setup logger for rendering context.

    Args:
        log_dir: Directory for this rendering session
        root: Template root recorded in the provenance header
        console_level: Minimum level echoed to stderr

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={"Template root": str(root)} if root is not None else None,
        console_level=console_level,
    )


# Wrapper functions with automatic [render] prefix


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


# High-level rendering-specific logging helpers


def log_session_created(root: Path, family_count: int, elapsed_time: float) -> None:
    """Log session creation with font discovery summary."""
    _log_debug(f"Session created at {root}")
    _log_debug(f"  Fonts: {family_count} families ({elapsed_time:.2f}s)")


def log_compile_start(markup_length: int, virtual_file_count: int, input_count: int) -> None:
    """Log start of compilation with world summary."""
    _log_debug("Starting compilation")
    _log_debug(f"  Markup: {markup_length} chars")
    _log_debug(f"  Virtual files: {virtual_file_count}, inputs: {input_count}")


def log_compile_result(result, elapsed_time: float, verbose: bool = False) -> None:
    """
    Log compilation success.

    Args:
        result: CompileResult from Session.compile()
        elapsed_time: Time taken to compile
        verbose: Show every warning instead of the first three
    """
    _log_success(
        f"Compilation succeeded: {result.page_count} page(s), "
        f"{len(result.warnings)} warnings ({elapsed_time:.2f}s)"
    )

    warning_limit = len(result.warnings) if verbose else 3
    for i, warning in enumerate(result.warnings[:warning_limit], 1):
        _log_debug(f"  Warning {i}: {warning.location} {warning.message}".rstrip())
    if len(result.warnings) > warning_limit:
        _log_debug(f"  ... and {len(result.warnings) - warning_limit} more warnings")


def log_compile_failure(error, elapsed_time: float) -> None:
    """
    Log compilation failure with the first diagnostics.

    Args:
        error: CompileError raised by the engine
        elapsed_time: Time taken before the engine gave up
    """
    _log_error(f"Compilation failed: {len(error.diagnostics)} diagnostics ({elapsed_time:.2f}s)")
    error_limit = 5
    for i, diagnostic in enumerate(error.diagnostics[:error_limit], 1):
        _log_error(f"  Error {i}: {diagnostic.location} {diagnostic.message}".rstrip())
    if len(error.diagnostics) > error_limit:
        _log_error(f"  ... and {len(error.diagnostics) - error_limit} more errors")


def log_export(format_name: str, size: int, elapsed_time: float) -> None:
    """Log a finished export."""
    _log_info(f"Exported {format_name}: {size} bytes ({elapsed_time:.2f}s)")
