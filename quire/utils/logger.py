"""
Log sinks for QUIRE entry points.

A run writes one log file per context (``render.log`` or ``pipeline.log``)
that opens with a provenance block: the QUIRE and Typst binding versions, the
command line and the working directory, plus whatever the context adds (the
template root, the declaration file). The console sink goes to stderr because
rendered documents may be written to stdout.

Context wrappers in contexts/{context}/logger.py call ``setup_logger``; library
code only logs.
"""

import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {message}"
CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>"

# Console colors per level
LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}

RULE = "=" * 80


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: Optional[Dict[str, str]] = None,
    level_colors: Optional[Dict[str, str]] = None,
    console_level: str = "INFO",
) -> Path:
    """
    Route loguru to ``<log_dir>/<context_name>.log`` and stderr.

    The file sink records DEBUG and up; the console shows ``console_level``
    and up. Any sinks configured earlier (including loguru's default) are
    removed.

    Args:
        context_name: Log file stem, "render" or "pipeline"
        log_dir: Directory for this run, created if missing
        extra_provenance: Context-specific provenance lines
        level_colors: Console color overrides, e.g. {"INFO": "<cyan>"}
        console_level: Minimum level echoed to stderr

    Returns:
        Path to the log file

    Example:
        from quire.utils.logger import setup_logger

        log_file = setup_logger(
            context_name="pipeline",
            log_dir=Path("outs/logs/invoice_pdf_20250301_091500"),
            extra_provenance={"Declarations": "config/renders.yaml"},
        )
    """
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()
    for level_name, color in {**LEVEL_COLORS, **(level_colors or {})}.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG")
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    logger.info(RULE)
    for key, value in provenance(extra_provenance).items():
        logger.info(f"{key}: {value}")
    logger.info(RULE)

    return log_file


def provenance(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Header lines written at the top of every log file, in order."""
    lines = {
        "QUIRE": _package_version("quire"),
        "Typst bindings": _package_version("typst"),
        "Python": sys.version.split()[0],
        "Command": " ".join(sys.argv),
        "Working directory": str(Path.cwd()),
    }
    lines.update(extra or {})
    return lines


def _package_version(distribution: str) -> str:
    try:
        return version(distribution)
    except PackageNotFoundError:
        return "not installed"
