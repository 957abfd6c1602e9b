"""
Toolchain Capability Probing

Determines which optional sandboxing flags the installed typesetter accepts and
which toolchain binaries are missing altogether.

Probing is a one-time, process-wide cost: probe_capabilities() is memoized per
typesetter binary and its result is immutable, so compilations share it freely.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List

from texpreview.contexts.compilation.exceptions import CompilationError
from texpreview.contexts.compilation.logger import _log_debug, _log_info
from texpreview.contexts.compilation.process_runner import run_bounded
from texpreview.contexts.compilation.settings import CompilerSettings

PROBE_TIMEOUT_S = 10.0

# kpathsea "paranoid" file access, set per run through -cnf-line (TeX Live 2018+)
OPENIN_ANY_FLAG = "-cnf-line=openin_any=p"
OPENOUT_ANY_FLAG = "-cnf-line=openout_any=p"

# How TeX engines report a flag they do not understand
_UNKNOWN_OPTION = re.compile(r"unrecognized option|unknown option|invalid option", re.IGNORECASE)

# Binary -> version flag and the package that usually provides it
DEPENDENCY_PROBES = {
    "typesetter": ("--version", "texlive-latex-base"),
    "converter": ("-v", "poppler-utils"),
    "biber": ("--version", "biber"),
    "bibtex": ("--version", "texlive-binaries"),
}


@dataclass(frozen=True)
class ExternalToolCapabilities:
    """
    Optional flags supported by the installed typesetter.

    Attributes:
        typesetter: Binary the probe ran against
        supports_openin_any: Accepts -cnf-line=openin_any=p
        supports_openout_any: Accepts -cnf-line=openout_any=p
    """

    typesetter: str
    supports_openin_any: bool = False
    supports_openout_any: bool = False


def _accepts_flag(typesetter: str, flag: str) -> bool:
    """Check whether the typesetter starts cleanly with flag on its command line."""
    try:
        outcome = run_bounded(typesetter, [flag, "--version"], timeout_s=PROBE_TIMEOUT_S)
    except CompilationError as e:
        _log_debug(f"Probe of {typesetter} {flag} failed: {e.message}")
        return False

    rejected = _UNKNOWN_OPTION.search(outcome.stdout) or _UNKNOWN_OPTION.search(outcome.stderr)
    return outcome.ok and not rejected


@lru_cache(maxsize=None)
def probe_capabilities(typesetter: str) -> ExternalToolCapabilities:
    """
    Probe the typesetter once per process for optional sandboxing flags.

    Never raises: a missing or misbehaving binary simply supports nothing.

    Args:
        typesetter: Typesetter binary (e.g. "pdflatex")

    Returns:
        Immutable capabilities record, shared by every later call
    """
    capabilities = ExternalToolCapabilities(
        typesetter=typesetter,
        supports_openin_any=_accepts_flag(typesetter, OPENIN_ANY_FLAG),
        supports_openout_any=_accepts_flag(typesetter, OPENOUT_ANY_FLAG),
    )
    _log_info(
        f"{typesetter} capabilities: openin_any={capabilities.supports_openin_any}, "
        f"openout_any={capabilities.supports_openout_any}"
    )
    return capabilities


def sandbox_flags(capabilities: ExternalToolCapabilities) -> List[str]:
    """Extra typesetter flags enabled by the probed capabilities."""
    flags = []
    if capabilities.supports_openin_any:
        flags.append(OPENIN_ANY_FLAG)
    if capabilities.supports_openout_any:
        flags.append(OPENOUT_ANY_FLAG)
    return flags


def missing_dependencies(settings: CompilerSettings) -> List[str]:
    """
    List toolchain binaries that cannot be run.

    Args:
        settings: Compiler settings naming the binaries

    Returns:
        Human-readable entries like "pdftocairo (poppler-utils)"; empty when all are present
    """
    missing = []
    for role, (version_flag, package) in DEPENDENCY_PROBES.items():
        binary = getattr(settings, role)
        try:
            run_bounded(binary, [version_flag], timeout_s=PROBE_TIMEOUT_S)
        except CompilationError:
            missing.append(f"{binary} ({package})")
    return missing
