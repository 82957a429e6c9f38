"""
Pipeline context logger.

Provides logging interface for pipeline context with automatic [pipeline] prefix.
All pipeline modules should import from this module, not from loguru directly.
"""

from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from quire.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[pipeline]"


def setup_pipeline_logger(
    log_dir: Path, declarations: Optional[Path] = None, console_level: str = "INFO"
) -> Path:
    """
    Setup logger for pipeline context.

    Args:
        log_dir: Directory for this run
        declarations: Declaration file recorded in the provenance header
        console_level: Minimum level echoed to stderr

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="pipeline",
        log_dir=log_dir,
        extra_provenance={"Declarations": str(declarations)} if declarations is not None else None,
        console_level=console_level,
    )


# Wrapper functions with automatic [pipeline] prefix


def _log_info(message: str) -> None:
    """Log info message with [pipeline] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [pipeline] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [pipeline] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [pipeline] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level pipeline-specific logging helpers


def log_registered(render_names: Iterable[str]) -> None:
    names = list(render_names)
    _log_debug(f"Registered {len(names)} render(s): {', '.join(names) or '(none)'}")


def log_run_start(render: str, format_name: str, argument_names: Iterable[str]) -> None:
    """Log start of a render run."""
    _log_info(f"Running render '{render}' ({format_name})")
    arguments = ", ".join(argument_names)
    if arguments:
        _log_debug(f"  Arguments: {arguments}")


def log_fetch(cardinality: str, count: Optional[int], elapsed_time: float) -> None:
    """
    Log a finished fetch.

    Args:
        cardinality: "one" or "many"
        count: Records fetched (None when streamed lazily)
        elapsed_time: Time taken by the data source
    """
    if cardinality == "one":
        _log_debug(f"  Fetched {'1 record' if count else 'no record'} ({elapsed_time:.2f}s)")
    elif count is None:
        _log_debug(f"  Fetch started, records streamed lazily ({elapsed_time:.2f}s)")
    else:
        _log_debug(f"  Fetched {count} records ({elapsed_time:.2f}s)")


def log_run_result(render: str, document, elapsed_time: float) -> None:
    """Log a finished render run."""
    _log_success(
        f"Render '{render}' produced {document.format}: {document.page_count} page(s), "
        f"{len(document.warnings)} warnings ({elapsed_time:.2f}s)"
    )


def log_run_failure(render: str, error: Exception, elapsed_time: float) -> None:
    """Log a failed render run."""
    first_line = str(error).splitlines()[0] if str(error) else type(error).__name__
    _log_error(f"Render '{render}' failed after {elapsed_time:.2f}s: {type(error).__name__}: {first_line}")
