"""
Shared utilities for texpreview.

Common functionality used across contexts:
- Logger setup
- PDF inspection
- Diagnostic path sanitization
"""

from texpreview.utils.paths import sanitize_paths
from texpreview.utils.pdf_processing import page_count

__all__ = ["page_count", "sanitize_paths"]
