"""
LaTeX Compilation Pipeline

Turns LaTeX source text into one SVG document per page:

    source -> doc.tex -> typesetter passes (+ bibliography) -> doc.pdf -> page-N.svg

Every compilation runs in its own temporary workspace that is removed when
compile() returns, on every exit path.
"""

import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from texpreview.contexts.compilation.capabilities import probe_capabilities, sandbox_flags
from texpreview.contexts.compilation.exceptions import (
    CompilationError,
    ConversionFailed,
    InvalidSourceText,
    NoPagesProduced,
    SizeLimitExceeded,
    TypesettingFailed,
)
from texpreview.contexts.compilation.latex_log import (
    NO_PAGES_MARKER,
    detect_bibliography_processor,
    log_excerpt,
    needs_rerun,
    parse_latex_log,
    read_log,
)
from texpreview.contexts.compilation.logger import (
    _log_debug,
    _log_info,
    _log_warning,
    log_compilation_result,
    log_compilation_start,
)
from texpreview.contexts.compilation.process_runner import ProcessOutcome, run_bounded
from texpreview.contexts.compilation.settings import CompilerSettings, load_settings
from texpreview.utils.paths import sanitize_paths
from texpreview.utils.pdf_processing import page_count

JOB_NAME = "doc"
INPUT_NAME = f"{JOB_NAME}.tex"
PAGE_FILE_TEMPLATE = "page-{page}.svg"
WORKSPACE_PREFIX = "texpreview-"

TYPESETTER_HINT = "Is a TeX distribution (texlive-latex-base) installed?"
CONVERTER_HINT = "Is poppler-utils installed?"


@dataclass
class CompilationResult:
    """
    Result of one compilation: either pages or an error message.

    Build with CompilationResult.from_pages() or CompilationResult.failure().

    Attributes:
        success: Whether pages were produced
        pages: SVG markup per page, page 1 first (empty on failure)
        error: Path-sanitized diagnostic (None on success)
        warnings: LaTeX warnings parsed from the final log
        num_passes: Typesetter passes that ran
    """

    success: bool
    pages: List[str] = field(default_factory=list)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    num_passes: int = 0

    @classmethod
    def from_pages(
        cls, pages: List[str], warnings: Optional[List[str]] = None, num_passes: int = 0
    ) -> "CompilationResult":
        if not pages:
            raise ValueError("A successful compilation needs at least one page")
        return cls(success=True, pages=list(pages), warnings=warnings or [], num_passes=num_passes)

    @classmethod
    def failure(
        cls, message: str, warnings: Optional[List[str]] = None, num_passes: int = 0
    ) -> "CompilationResult":
        return cls(success=False, error=message, warnings=warnings or [], num_passes=num_passes)


@dataclass
class _PassState:
    """Mutable bookkeeping for one compilation attempt."""

    passes: int = 0
    bibliography_done: bool = False
    last_outcome: Optional[ProcessOutcome] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def stdout(self) -> str:
        return self.last_outcome.stdout if self.last_outcome else ""

    @property
    def stderr(self) -> str:
        return self.last_outcome.stderr if self.last_outcome else ""


class CompilationPipeline:
    """
    Multi-pass LaTeX to SVG compiler.

    Not safe for concurrent use by itself: compilations share toolchain caches
    outside the workspace, so callers go through CompilationQueue.

    Args:
        settings: Toolchain and limits (default: load_settings())

    Example:
        >>> pipeline = CompilationPipeline()
        >>> result = pipeline.compile(r"\\documentclass{article}\\begin{document}Hi\\end{document}")
        >>> result.success, len(result.pages)
        (True, 1)
    """

    def __init__(self, settings: Optional[CompilerSettings] = None):
        self.settings = settings or load_settings()

    def compile(self, source: str, dark_mode: bool = False) -> CompilationResult:
        """
        Compile LaTeX source to per-page SVG markup.

        Never raises for toolchain or document problems; every CompilationError
        becomes a failed result with workspace paths sanitized.

        Args:
            source: Complete LaTeX document
            dark_mode: Accepted for request symmetry; presentation is the renderer's job

        Returns:
            CompilationResult with pages in order, or an error message
        """
        start = time.monotonic()

        try:
            self._check_source(source)
        except CompilationError as e:
            result = CompilationResult.failure(str(e))
            log_compilation_result(result, time.monotonic() - start)
            return result

        try:
            workspace_dir = tempfile.TemporaryDirectory(prefix=WORKSPACE_PREFIX)
        except OSError as e:
            result = CompilationResult.failure(f"Failed to create temp dir: {e}")
            log_compilation_result(result, time.monotonic() - start)
            return result

        with workspace_dir as tmp:
            workspace = Path(tmp)
            input_path = workspace / INPUT_NAME
            state = _PassState()

            try:
                pages = self._compile_in_workspace(workspace, source, state)
                result = CompilationResult.from_pages(
                    pages, warnings=state.warnings, num_passes=state.passes
                )
            except CompilationError as e:
                result = CompilationResult.failure(
                    sanitize_paths(str(e), workspace, input_path),
                    warnings=state.warnings,
                    num_passes=state.passes,
                )

            result.warnings = [sanitize_paths(w, workspace, input_path) for w in result.warnings]
            log_compilation_result(result, time.monotonic() - start, state.stdout, state.stderr)

        return result

    def _check_source(self, source: str) -> None:
        try:
            size_bytes = len(source.encode("utf-8"))
        except UnicodeEncodeError as e:
            raise InvalidSourceText(e) from e
        if size_bytes > self.settings.max_source_bytes:
            raise SizeLimitExceeded(size_bytes, self.settings.max_source_bytes)
        if not source.strip():
            raise NoPagesProduced("Document is empty.")

    def _compile_in_workspace(self, workspace: Path, source: str, state: _PassState) -> List[str]:
        input_path = workspace / INPUT_NAME
        try:
            input_path.write_text(source, encoding="utf-8")
        except OSError as e:
            raise CompilationError(f"Failed to write tex file: {e}") from e

        log_compilation_start(len(source.encode("utf-8")), self.settings.max_passes, workspace)

        log_content = self._run_typesetter_passes(workspace, state)
        _, state.warnings = parse_latex_log(log_content)

        pdf_path = workspace / f"{JOB_NAME}.pdf"
        if not pdf_path.exists():
            if NO_PAGES_MARKER in log_content:
                raise NoPagesProduced()
            raise TypesettingFailed(
                "LaTeX failed to generate a PDF.",
                details=self._failure_details(log_content, state.last_outcome),
            )

        num_pages = page_count(pdf_path)
        if num_pages is None:
            raise ConversionFailed("The generated PDF could not be read.")
        if num_pages == 0:
            raise NoPagesProduced()
        _log_debug(f"PDF has {num_pages} page(s)")

        return self._convert_pages(workspace, pdf_path, num_pages)

    def _typesetter_args(self, workspace: Path) -> List[str]:
        capabilities = probe_capabilities(self.settings.typesetter)
        return [
            # Never optional: stops \write18 from running shell commands
            "-no-shell-escape",
            "-interaction=nonstopmode",
            "-file-line-error",
            *sandbox_flags(capabilities),
            f"-output-directory={workspace}",
            INPUT_NAME,
        ]

    def _run_typesetter_passes(self, workspace: Path, state: _PassState) -> str:
        """
        Run the typesetter until the log stops asking for reruns or the pass budget is spent.

        Returns:
            Log content of the final pass
        """
        args = self._typesetter_args(workspace)
        log_path = workspace / f"{JOB_NAME}.log"
        aux_path = workspace / f"{JOB_NAME}.aux"

        while True:
            state.passes += 1
            _log_debug(f"Typesetter pass {state.passes}/{self.settings.max_passes}")
            state.last_outcome = run_bounded(
                self.settings.typesetter,
                args,
                cwd=workspace,
                timeout_s=self.settings.timeout_s,
                install_hint=TYPESETTER_HINT,
            )
            log_content = self._read_workspace_file(log_path)

            rerun = False
            if not state.bibliography_done:
                state.bibliography_done = True
                processor = detect_bibliography_processor(
                    log_content, self._read_workspace_file(aux_path)
                )
                if processor is not None:
                    self._run_bibliography(processor, workspace)
                    rerun = True

            if needs_rerun(log_content):
                _log_debug("Log requests another pass")
                rerun = True

            if not rerun:
                return log_content
            if state.passes >= self.settings.max_passes:
                _log_warning(
                    f"Pass budget of {self.settings.max_passes} exhausted; "
                    "using output with unresolved references"
                )
                return log_content

    @staticmethod
    def _read_workspace_file(path: Path) -> str:
        """Read a .log or .aux file the typesetter left in the workspace."""
        try:
            return read_log(path)
        except OSError as e:
            raise TypesettingFailed(f"Could not read {path.name}: {e}") from e

    def _run_bibliography(self, processor: str, workspace: Path) -> None:
        """Best-effort bibliography run; a failure only degrades the bibliography."""
        binary = self.settings.biber if processor == "biber" else self.settings.bibtex
        _log_info(f"Running {binary} for bibliography")

        try:
            outcome = run_bounded(
                binary, [JOB_NAME], cwd=workspace, timeout_s=self.settings.timeout_s
            )
        except CompilationError as e:
            _log_warning(f"Bibliography skipped: {e.message}")
            return

        if not outcome.ok:
            _log_warning(f"{binary} exited with {outcome.returncode}; bibliography may be incomplete")
            _log_debug(outcome.stdout + outcome.stderr)

    def _convert_pages(self, workspace: Path, pdf_path: Path, num_pages: int) -> List[str]:
        """Convert the PDF to one SVG per page, each call bounded to a single page."""
        converter = self.settings.converter
        pages = []

        for page in range(1, num_pages + 1):
            svg_path = workspace / PAGE_FILE_TEMPLATE.format(page=page)
            outcome = run_bounded(
                converter,
                ["-svg", "-f", str(page), "-l", str(page), pdf_path.name, svg_path.name],
                cwd=workspace,
                timeout_s=self.settings.timeout_s,
                install_hint=CONVERTER_HINT,
            )
            if not outcome.ok:
                raise ConversionFailed(
                    f"{converter} failed to convert page {page} to SVG.",
                    details=f"Stderr:\n{outcome.stderr}",
                )
            if not svg_path.exists():
                raise ConversionFailed(
                    f"{converter} produced no SVG for page {page}.",
                    details=f"Stderr:\n{outcome.stderr}" if outcome.stderr else None,
                )
            try:
                pages.append(svg_path.read_text(encoding="utf-8", errors="replace"))
            except OSError as e:
                raise ConversionFailed(f"Could not read the SVG for page {page}: {e}") from e

        if not pages:
            raise NoPagesProduced()
        _log_debug(f"Converted {len(pages)} page(s) to SVG")
        return pages

    def _failure_details(self, log_content: str, outcome: Optional[ProcessOutcome]) -> str:
        excerpt_lines = self.settings.log_excerpt_lines
        errors, _ = parse_latex_log(log_content)

        sections = []
        if errors:
            sections.append("Errors:\n" + "\n".join(f"  {error}" for error in errors[:10]))
        sections.append(
            "--- LOG ---\n" + (log_excerpt(log_content, excerpt_lines) or "No log file found")
        )
        if outcome is not None:
            sections.append("--- STDERR ---\n" + log_excerpt(outcome.stderr, excerpt_lines))
            sections.append("--- STDOUT ---\n" + log_excerpt(outcome.stdout, excerpt_lines))
        return "\n\n".join(sections)
