"""
LaTeX log analysis.

Reads what the typesetter left behind after a pass and answers the questions the
multi-pass pipeline asks: which errors and warnings occurred, does the document
need another pass, and does it need a bibliography run.
"""

import re
from pathlib import Path
from typing import List, Optional, Tuple

# Phrases LaTeX and common packages emit when another pass would change the output
RERUN_PATTERNS = [
    # cross-references, outlines (rerunfilecheck), citations (natbib)
    re.compile(r"Rerun to get [\w\s-]+? (?:right|correct)"),
    re.compile(r"Label\(s\) may have changed\. Rerun"),
    re.compile(r"Please rerun LaTeX"),
    re.compile(r"Table widths have changed\. Rerun LaTeX"),
]

BIBER_PATTERNS = [
    re.compile(r"Please \(re\)run Biber"),
]

BIBTEX_PATTERNS = [
    re.compile(r"Please \(re\)run BibTeX"),
]

# Written to the .aux file by \bibliography{...}
BIBDATA_PATTERN = re.compile(r"^\\bibdata\{", re.MULTILINE)

NO_PAGES_MARKER = "No pages of output"


def read_log(path: Path) -> str:
    """Read a TeX log file, or return "" if the typesetter never wrote one."""
    if not path.exists():
        return ""
    # TeX logs are written in latin-1 (font metadata contains non-UTF-8)
    return path.read_text(encoding="latin-1")


def parse_latex_log(log_content: str) -> Tuple[List[str], List[str]]:
    """
    Parse LaTeX log file for errors and warnings.

    Args:
        log_content: Content of the .log file

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    # LaTeX error pattern: "! Error message"
    error_pattern = re.compile(r"^! (.+)$", re.MULTILINE)
    for match in error_pattern.finditer(log_content):
        errors.append(match.group(1).strip())

    # -file-line-error style: "./doc.tex:12: Undefined control sequence."
    file_line_pattern = re.compile(r"^\S+\.tex:\d+: (.+)$", re.MULTILINE)
    for match in file_line_pattern.finditer(log_content):
        message = match.group(0).strip()
        if message not in errors:
            errors.append(message)

    # Additional error patterns that don't start with "!"
    additional_error_patterns = [
        r"File ended while scanning use of",
        r"Emergency stop",
    ]
    for pattern in additional_error_patterns:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and not any(match.group(1) in error for error in errors):
            errors.append(match.group(1))

    warning_patterns = [
        r"LaTeX Warning: (.+)",
        r"Package \w+ Warning: (.+)",
        r"Overfull \\hbox \((.+)\)",
        r"Underfull \\hbox \((.+)\)",
    ]
    for pattern in warning_patterns:
        compiled = re.compile(pattern, re.MULTILINE)
        for match in compiled.finditer(log_content):
            warnings.append(match.group(1).strip())

    return errors, warnings


def needs_rerun(log_content: str) -> bool:
    """True if the log asks for another typesetter pass."""
    return any(pattern.search(log_content) for pattern in RERUN_PATTERNS)


def detect_bibliography_processor(log_content: str, aux_content: str = "") -> Optional[str]:
    """
    Decide which bibliography processor, if any, the document needs.

    biblatex announces its backend in the log; classic \\bibliography{} only
    leaves a \\bibdata entry in the .aux file.

    Returns:
        "biber", "bibtex" or None
    """
    if any(pattern.search(log_content) for pattern in BIBER_PATTERNS):
        return "biber"
    if any(pattern.search(log_content) for pattern in BIBTEX_PATTERNS):
        return "bibtex"
    if BIBDATA_PATTERN.search(aux_content):
        return "bibtex"
    return None


def log_excerpt(text: str, max_lines: int) -> str:
    """Last max_lines lines of text, marking the cut when truncated."""
    lines = text.rstrip().splitlines()
    if len(lines) <= max_lines:
        return "\n".join(lines)
    omitted = len(lines) - max_lines
    return "\n".join([f"[... {omitted} earlier lines omitted ...]", *lines[-max_lines:]])
