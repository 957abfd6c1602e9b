"""
texpreview - live LaTeX preview backend

Turns LaTeX source text into paginated SVG previews by orchestrating an external
TeX toolchain, one compilation at a time.

Architecture:
- Compilation Context: bounded external processes, toolchain probing, multi-pass pipeline
- Preview Context: single-flight compilation queue and HTML page rendering
"""

__version__ = "0.1.0"
