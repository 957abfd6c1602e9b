"""
Generic logger setup utilities.

Provides reusable loguru configuration with provenance tracking.
Context-specific wrappers should be defined in contexts/{context}/logger.py.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Default level colors for console output
LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}


def setup_logger(
    context_name: str,
    log_dir: Optional[Path] = None,
    extra_provenance: dict = None,
    console_level: str = "INFO",
) -> Optional[Path]:
    """
    Configure loguru for a context with provenance tracking.

    Sets up a console sink and, when log_dir is given, a DEBUG file sink.
    Logs execution provenance (script, command, working directory, Python version).

    Args:
        context_name: Context identifier (e.g., "compile", "preview")
        log_dir: Directory for this logging session (None = console only)
        extra_provenance: Additional key-value pairs for provenance header
        console_level: Minimum level shown on the console

    Returns:
        Path to log file, or None when logging to the console only

    Example:
        from texpreview.utils.logger import setup_logger

        log_file = setup_logger(
            context_name="compile",
            log_dir=Path("outs/logs"),
            extra_provenance={"Typesetter": "pdflatex"}
        )
    """
    logger.remove()

    for level_name, color in LEVEL_COLORS.items():
        logger.level(level_name, color=color)

    log_file = None
    if log_dir is not None:
        log_dir.mkdir(exist_ok=True, parents=True)
        log_file = log_dir / f"{context_name}.log"
        # File sink captures everything
        logger.add(
            log_file, format="{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {message}", level="DEBUG"
        )

    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>",
        level=console_level,
        colorize=True,
    )

    log_provenance(extra_provenance)

    return log_file


def log_provenance(extra_context: dict = None) -> None:
    """
    Log execution provenance to current logger.

    Args:
        extra_context: Additional key-value pairs to log
    """
    logger.debug("=" * 80)
    logger.debug(f"Script: {sys.argv[0]}")
    logger.debug(f"Command: {' '.join(sys.argv)}")
    logger.debug(f"Working directory: {Path.cwd()}")
    logger.debug(f"Python: {sys.version.split()[0]}")

    if extra_context:
        for key, value in extra_context.items():
            logger.debug(f"{key}: {value}")

    logger.debug("=" * 80)
