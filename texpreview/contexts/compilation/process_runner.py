"""
Bounded External Process Execution

Runs one external command to completion or until its time budget elapses.
Every toolchain call (typesetter, bibliography processor, converter, probes)
goes through run_bounded() so that failure semantics are uniform:

    - completed (any exit status) -> ProcessOutcome
    - could not start             -> ProcessSpawnFailed
    - exceeded timeout            -> ProcessTimedOut (process killed and reaped)
"""

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from texpreview.contexts.compilation.exceptions import ProcessSpawnFailed, ProcessTimedOut
from texpreview.contexts.compilation.logger import _log_debug, _log_warning


@dataclass(frozen=True)
class ProcessOutcome:
    """
    Captured result of a process that ran to completion.

    Attributes:
        returncode: Exit status
        stdout: Decoded standard output
        stderr: Decoded standard error
        elapsed_s: Wall-clock run time
    """

    returncode: int
    stdout: str
    stderr: str
    elapsed_s: float

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _decode(data: Optional[bytes]) -> str:
    # TeX output is frequently not valid UTF-8 (font metadata, latin-1 logs)
    return (data or b"").decode("utf-8", errors="replace")


def _kill_tree(process: subprocess.Popen) -> None:
    """Kill the process and, on POSIX, every helper it spawned in its session."""
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        process.kill()


def run_bounded(
    command: str,
    args: Sequence[str],
    cwd: Optional[Path] = None,
    timeout_s: float = 30.0,
    install_hint: str = "",
) -> ProcessOutcome:
    """
    Run an external command with a hard time limit.

    Args:
        command: Program to execute (resolved through PATH)
        args: Arguments passed after the program
        cwd: Working directory for the process
        timeout_s: Maximum wall-clock time before the process is killed
        install_hint: Appended to the spawn failure message (e.g. package to install)

    Returns:
        ProcessOutcome for a process that exited on its own, whatever its exit status

    Raises:
        ProcessSpawnFailed: If the program cannot be started
        ProcessTimedOut: If the program was still running after timeout_s
    """
    argv = [command, *args]
    _log_debug(f"Running: {' '.join(argv)}")

    start = time.monotonic()
    try:
        process = subprocess.Popen(
            argv,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            # Own session so helpers (mktexpk, kpsewhich) die with the parent
            start_new_session=(os.name == "posix"),
        )
    except OSError as e:
        raise ProcessSpawnFailed(command, e, hint=install_hint) from e

    try:
        stdout, stderr = process.communicate(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        _kill_tree(process)
        # Reap the killed process and drain its pipes
        process.communicate()
        _log_warning(f"{command} killed after {timeout_s:g}s")
        raise ProcessTimedOut(command, timeout_s) from None

    elapsed = time.monotonic() - start
    _log_debug(f"{command} exited with {process.returncode} ({elapsed:.2f}s)")

    return ProcessOutcome(
        returncode=process.returncode,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
        elapsed_s=elapsed,
    )
