"""Failure taxonomy for the compilation context."""

from typing import Optional


class CompilationError(Exception):
    """
    Base exception for every recoverable compilation failure.

    The pipeline converts these into failed CompilationResults at its boundary,
    so they never reach the preview queue or the UI.

    Attributes:
        message: Error description shown to the user
        details: Supporting diagnostic text (log excerpt, tool output)
    """

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details

        parts = [message]
        if details:
            parts.append(f"\n{details}")

        super().__init__("\n".join(parts))


class SizeLimitExceeded(CompilationError):
    """Source text is larger than the configured maximum."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Document too large ({size_bytes / (1024 * 1024):.2f} MB). "
            f"Maximum allowed size is {limit_bytes / (1024 * 1024):.2f} MB."
        )


class ProcessSpawnFailed(CompilationError):
    """
    External tool could not be started (missing binary, permission denied).

    Attributes:
        command: Program that failed to start
        original_error: The OSError raised by the spawn
    """

    def __init__(self, command: str, original_error: Optional[OSError] = None, hint: str = ""):
        self.command = command
        self.original_error = original_error

        message = f"Failed to run {command}: {original_error or 'could not start process'}."
        if hint:
            message += f" {hint}"
        super().__init__(message)


class ProcessTimedOut(CompilationError):
    """External tool exceeded its time budget and was killed."""

    def __init__(self, command: str, timeout_s: float):
        self.command = command
        self.timeout_s = timeout_s
        super().__init__(f"{command} timed out after {timeout_s:g} seconds")


class TypesettingFailed(CompilationError):
    """Typesetter finished without producing a PDF."""


class ConversionFailed(CompilationError):
    """PDF could not be inspected or converted to per-page SVG."""


class NoPagesProduced(CompilationError):
    """Compilation finished but there are no pages to show."""

    DEFAULT_MESSAGE = (
        "Document compiled but generated no pages. Ensure you have content between "
        "\\begin{document} and \\end{document}."
    )

    def __init__(self, message: str = DEFAULT_MESSAGE, details: Optional[str] = None):
        super().__init__(message, details)


class InvalidSourceText(CompilationError):
    """Source text cannot be encoded as UTF-8 (e.g. lone surrogates)."""

    def __init__(self, original_error: UnicodeEncodeError):
        self.original_error = original_error
        super().__init__(
            f"Document contains characters that cannot be encoded as UTF-8 "
            f"(position {original_error.start})."
        )
