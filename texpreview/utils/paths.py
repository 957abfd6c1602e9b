"""
Path sanitization for user-facing diagnostics.

Compiler logs and tool output embed the absolute path of the temporary workspace
and of the input file. These are rewritten to stable placeholders before any text
reaches the preview pane.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

TEMP_DIR_PLACEHOLDER = "[TEMP_DIR]"
HOME_PLACEHOLDER = "~"


def _replacements(
    workspace: Path, input_path: Optional[Path]
) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []

    if input_path is not None:
        relative_input = f"{TEMP_DIR_PLACEHOLDER}/{input_path.name}"
        pairs.append((str(input_path), relative_input))
        pairs.append((str(input_path.resolve()), relative_input))

    pairs.append((str(workspace), TEMP_DIR_PLACEHOLDER))
    pairs.append((str(workspace.resolve()), TEMP_DIR_PLACEHOLDER))

    home = str(Path.home())
    if home not in ("", "/"):
        pairs.append((home, HOME_PLACEHOLDER))

    # Longest first so a path is never partially rewritten by one of its prefixes
    unique = {src: dst for src, dst in pairs if src}
    return sorted(unique.items(), key=lambda pair: len(pair[0]), reverse=True)


def sanitize_paths(
    text: str,
    workspace: Union[str, Path],
    input_path: Optional[Union[str, Path]] = None,
) -> str:
    """
    Rewrite workspace and input-file paths in text to placeholders.

    Args:
        text: Diagnostic text (log excerpt, stderr, error message)
        workspace: Temporary directory the compilation ran in
        input_path: Source file inside the workspace (optional)

    Returns:
        Text with "[TEMP_DIR]" in place of the workspace path,
        "[TEMP_DIR]/<name>" in place of the input path and "~" for the home directory

    Example:
        >>> sanitize_paths("Error in /tmp/xyz/doc.tex", "/tmp/xyz", "/tmp/xyz/doc.tex")
        'Error in [TEMP_DIR]/doc.tex'
    """
    if not text:
        return text

    workspace = Path(workspace)
    input_path = Path(input_path) if input_path is not None else None

    for src, dst in _replacements(workspace, input_path):
        text = text.replace(src, dst)
    return text
