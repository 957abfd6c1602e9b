"""
Preview Context

Responsibilities:
- Serializes compilation requests from the editor (single flight, drop if busy)
- Delivers each accepted result exactly once to its caller
- Renders pages or diagnostics into a sandboxed HTML document

Owns: compilation scheduling, preview HTML
Never: Runs external processes directly
"""

from texpreview.contexts.preview.compilation_queue import CompilationQueue, CompilationRequest
from texpreview.contexts.preview.renderer import PageRenderer

__all__ = ["CompilationQueue", "CompilationRequest", "PageRenderer"]
