"""
Compilation context logger.

Provides logging interface for the compilation context with automatic [compile] prefix.
All compilation modules should import from this module, not from loguru directly.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from texpreview.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[compile]"


def setup_compilation_logger(
    log_dir: Optional[Path], typesetter: str, console_level: str = "INFO"
) -> Optional[Path]:
    """
    Setup logger for compilation context.

    Args:
        log_dir: Directory for this session's log file (None for console only)
        typesetter: Typesetter binary, recorded in the provenance header
        console_level: Minimum level shown on stderr

    Returns:
        Path to log file, or None without log_dir
    """
    return _setup_logger(
        context_name="compile",
        log_dir=log_dir,
        extra_provenance={"Typesetter": typesetter},
        console_level=console_level,
    )


# Wrapper functions with automatic [compile] prefix


def _log_info(message: str) -> None:
    """Log info message with [compile] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [compile] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [compile] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [compile] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [compile] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level compilation logging helpers


def log_compilation_start(source_bytes: int, max_passes: int, workspace: Path) -> None:
    """Log start of compilation with context."""
    _log_debug(f"Starting compilation ({source_bytes} bytes)")
    _log_debug(f"  Workspace: {workspace}")
    _log_debug(f"  Pass budget: {max_passes}")


def log_compilation_result(
    result,  # CompilationResult
    elapsed_time: float,
    stdout: str = "",
    stderr: str = "",
) -> None:
    """
    Log compilation result with diagnostics.

    Args:
        result: CompilationResult from CompilationPipeline.compile()
        elapsed_time: Time taken to compile
        stdout: Typesetter stdout of the last pass
        stderr: Typesetter stderr of the last pass
    """
    if result.success:
        _log_success(
            f"Compiled {len(result.pages)} page(s) in {result.num_passes} pass(es) "
            f"({elapsed_time:.2f}s)"
        )
    else:
        _log_error(f"Compilation failed ({elapsed_time:.2f}s)")
        _log_debug(f"  {result.error.splitlines()[0] if result.error else ''}")

    if result.warnings:
        _log_debug(f"{len(result.warnings)} LaTeX warnings")
        for i, warn in enumerate(result.warnings[:3], 1):
            _log_debug(f"  Warning {i}: {warn}")
        if len(result.warnings) > 3:
            _log_debug(f"  ... and {len(result.warnings) - 3} more warnings")

    # Raw dump keeps multi-line tool output readable
    if not result.success:
        if stdout:
            logger.opt(raw=True).debug(
                f"\n{'=' * 80}\nTYPESETTER STDOUT:\n{'=' * 80}\n{stdout}\n"
            )
        if stderr:
            logger.opt(raw=True).debug(
                f"\n{'=' * 80}\nTYPESETTER STDERR:\n{'=' * 80}\n{stderr}\n"
            )
