"""
Compilation Context

Responsibilities:
- Runs external toolchain processes under a time limit
- Probes the typesetter once per process for optional sandboxing flags
- Compiles LaTeX source through multiple passes (cross-references, bibliography)
- Converts the PDF to one SVG per page
- Produces path-sanitized diagnostics on failure

Owns: temporary workspaces, external process lifecycle, failure taxonomy
Never: Decides when to compile or how results are displayed
"""

from texpreview.contexts.compilation.capabilities import (
    ExternalToolCapabilities,
    missing_dependencies,
    probe_capabilities,
)
from texpreview.contexts.compilation.compiler import CompilationPipeline, CompilationResult
from texpreview.contexts.compilation.exceptions import (
    CompilationError,
    ConversionFailed,
    InvalidSourceText,
    NoPagesProduced,
    ProcessSpawnFailed,
    ProcessTimedOut,
    SizeLimitExceeded,
    TypesettingFailed,
)
from texpreview.contexts.compilation.process_runner import ProcessOutcome, run_bounded
from texpreview.contexts.compilation.settings import CompilerSettings, load_settings

__all__ = [
    "CompilationError",
    "CompilationPipeline",
    "CompilationResult",
    "CompilerSettings",
    "ConversionFailed",
    "ExternalToolCapabilities",
    "InvalidSourceText",
    "NoPagesProduced",
    "ProcessOutcome",
    "ProcessSpawnFailed",
    "ProcessTimedOut",
    "SizeLimitExceeded",
    "TypesettingFailed",
    "load_settings",
    "missing_dependencies",
    "probe_capabilities",
    "run_bounded",
]
