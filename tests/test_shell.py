import signal
import subprocess
import sys
import time
from unittest.mock import patch

import pytest

from x_cli import shell
from x_cli.errors import ShellExecutionError

posix_only = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX shell required")

# ---------------------------------------------------------------------------
# Shell selection
# ---------------------------------------------------------------------------

@posix_only
def test_shell_argv_prefers_bash():
    with patch("x_cli.shell.shutil.which", return_value="/usr/bin/bash"):
        assert shell.shell_argv("ls | wc -l") == ["/usr/bin/bash", "-c", "ls | wc -l"]

@posix_only
def test_shell_argv_falls_back_to_sh():
    with patch("x_cli.shell.shutil.which", return_value=None):
        assert shell.shell_argv("ls") == ["/bin/sh", "-c", "ls"]

def test_shell_argv_windows():
    with patch("x_cli.shell.sys.platform", "win32"):
        assert shell.shell_argv("dir") == ["cmd", "/C", "dir"]

# ---------------------------------------------------------------------------
# Captured
# ---------------------------------------------------------------------------

@posix_only
def test_run_captured_returns_trimmed_output():
    assert shell.run_captured("echo hello") == "hello"

@posix_only
def test_run_captured_merges_stderr():
    output = shell.run_captured("echo out; echo err 1>&2")
    assert "out" in output
    assert "err" in output

@posix_only
def test_run_captured_honours_pipes():
    assert shell.run_captured("printf 'a\\nb\\nc\\n' | wc -l").strip() == "3"

@posix_only
def test_run_captured_non_zero_exit():
    with pytest.raises(ShellExecutionError) as excinfo:
        shell.run_captured("echo partial; exit 3")
    assert excinfo.value.exit_code == 3
    assert excinfo.value.output == "partial"
    assert not excinfo.value.interactive

# ---------------------------------------------------------------------------
# Streaming / interactive
# ---------------------------------------------------------------------------

@posix_only
def test_run_streaming_captures_and_shows(capsys):
    assert shell.run_streaming("echo streamed") == "streamed"
    out = capsys.readouterr().out
    assert "streamed" in out
    assert out.startswith(shell.ANSI_DIM)
    assert out.endswith(shell.ANSI_RESET)

@posix_only
def test_run_streaming_no_output_leaves_terminal_alone(capsys):
    assert shell.run_streaming("true") == ""
    assert capsys.readouterr().out == ""

@posix_only
def test_run_streaming_non_zero_exit():
    with pytest.raises(ShellExecutionError) as excinfo:
        shell.run_streaming("echo oops; exit 4")
    assert excinfo.value.exit_code == 4
    assert excinfo.value.output == "oops"

@posix_only
def test_run_interactive_exit_code():
    with pytest.raises(ShellExecutionError) as excinfo:
        shell.run_interactive("exit 5")
    assert excinfo.value.exit_code == 5
    assert excinfo.value.interactive

@posix_only
def test_run_interactive_success():
    assert shell.run_interactive("true") is None

@posix_only
def test_run_streaming_interrupt_kills_child_and_resets(capsys):
    real_wait = subprocess.Popen.wait
    waited = []

    def interrupted_wait(proc, *args, **kwargs):
        waited.append(proc)
        if len(waited) > 1:
            return real_wait(proc, *args, **kwargs)
        # Ctrl+C arrives once the first line has been streamed
        deadline = time.monotonic() + 5
        while "before" not in sys.stdout.getvalue() and time.monotonic() < deadline:
            time.sleep(0.01)
        raise KeyboardInterrupt

    with patch.object(subprocess.Popen, "wait", autospec=True, side_effect=interrupted_wait):
        with pytest.raises(ShellExecutionError, match="interrupted") as excinfo:
            shell.run_streaming("echo before; exec sleep 30")

    assert waited[0].returncode == -signal.SIGKILL
    assert excinfo.value.output == "before"
    out = capsys.readouterr().out
    assert out.startswith(shell.ANSI_DIM)
    assert out.endswith(shell.ANSI_RESET)
