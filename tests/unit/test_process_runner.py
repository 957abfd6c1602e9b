"""Unit tests for bounded external process execution."""

import sys
import time

import pytest

from texpreview.contexts.compilation.exceptions import (
    CompilationError,
    ProcessSpawnFailed,
    ProcessTimedOut,
)
from texpreview.contexts.compilation.process_runner import run_bounded


@pytest.mark.unit
def test_run_bounded_captures_output_and_status(tmp_path):
    """Test that a completed process returns stdout, stderr and exit status."""
    script = "import sys; print('out'); sys.stderr.write('err'); sys.exit(3)"

    outcome = run_bounded(sys.executable, ["-c", script], cwd=tmp_path, timeout_s=10)

    assert outcome.returncode == 3
    assert outcome.ok is False
    assert outcome.stdout.strip() == "out"
    assert outcome.stderr == "err"
    assert outcome.elapsed_s >= 0


@pytest.mark.unit
def test_run_bounded_uses_working_directory(tmp_path):
    """Test that the process runs inside the requested directory."""
    outcome = run_bounded(
        sys.executable, ["-c", "import os; print(os.getcwd())"], cwd=tmp_path, timeout_s=10
    )

    assert outcome.ok
    assert outcome.stdout.strip() == str(tmp_path.resolve())


@pytest.mark.unit
def test_run_bounded_replaces_undecodable_bytes():
    """Test that non-UTF-8 output is decoded with replacement characters."""
    script = "import sys; sys.stdout.buffer.write(b'caf\\xe9')"

    outcome = run_bounded(sys.executable, ["-c", script], timeout_s=10)

    assert outcome.stdout == "caf�"


@pytest.mark.unit
def test_run_bounded_kills_process_after_timeout():
    """Test that a process running 5x longer than its timeout is killed within 2x the timeout."""
    start = time.monotonic()

    with pytest.raises(ProcessTimedOut) as exc_info:
        run_bounded(sys.executable, ["-c", "import time; time.sleep(5)"], timeout_s=1)

    elapsed = time.monotonic() - start
    assert elapsed < 2.0
    assert exc_info.value.timeout_s == 1
    assert "timed out after 1 seconds" in str(exc_info.value)


@pytest.mark.unit
def test_run_bounded_timeout_kills_child_processes(tmp_path):
    """Test that helpers spawned by the timed-out process do not keep it alive."""
    marker = tmp_path / "grandchild-finished"
    script = (
        "import subprocess, sys; "
        "subprocess.Popen([sys.executable, '-c', "
        f"\"import time, pathlib; time.sleep(3); pathlib.Path(r'{marker}').touch()\"]); "
        "import time; time.sleep(10)"
    )
    start = time.monotonic()

    with pytest.raises(ProcessTimedOut):
        run_bounded(sys.executable, ["-c", script], timeout_s=1)

    assert time.monotonic() - start < 2.5
    time.sleep(3)
    assert not marker.exists()


@pytest.mark.unit
def test_run_bounded_missing_binary_is_spawn_failure(tmp_path):
    """Test that a missing binary raises ProcessSpawnFailed, not a timeout or exit status."""
    with pytest.raises(ProcessSpawnFailed) as exc_info:
        run_bounded(
            str(tmp_path / "no-such-binary"), ["--version"], install_hint="Install it."
        )

    assert isinstance(exc_info.value, CompilationError)
    assert isinstance(exc_info.value.original_error, FileNotFoundError)
    assert "Install it." in str(exc_info.value)


@pytest.mark.unit
def test_run_bounded_permission_denied_is_spawn_failure(tmp_path):
    """Test that a non-executable file raises ProcessSpawnFailed."""
    not_executable = tmp_path / "tool"
    not_executable.write_text("#!/bin/sh\necho hi\n")
    not_executable.chmod(0o644)

    with pytest.raises(ProcessSpawnFailed):
        run_bounded(str(not_executable), [])
