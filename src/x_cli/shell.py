# shell.py
# Shell command execution in three modes.
#
#   interactive  stdio wired straight to the terminal, nothing captured
#   captured     stdout+stderr merged into one buffer, nothing shown
#   streaming    output shown dimmed AND captured; Ctrl+C kills the child
#
# The command string is handed to the platform shell verbatim, so pipes,
# redirects and globbing all work.

import codecs
import logging
import shutil
import subprocess
import sys
import threading
from typing import IO

from x_cli.errors import ShellExecutionError

logger = logging.getLogger(__name__)

ANSI_DIM = "\033[2m"
ANSI_RESET = "\033[0m"

_CHUNK_SIZE = 4096


def shell_argv(command: str) -> list[str]:
    """cmd /C on Windows, bash -c (or /bin/sh -c) elsewhere."""
    if sys.platform.startswith("win"):
        return ["cmd", "/C", command]
    shell = shutil.which("bash") or "/bin/sh"
    return [shell, "-c", command]


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()


# ---------------------------------------------------------------------------
# Interactive
# ---------------------------------------------------------------------------


def run_interactive(command: str) -> None:
    """Run with the terminal attached. Non-zero exit raises with the exit code."""
    logger.debug("interactive: %s", command)
    try:
        completed = subprocess.run(shell_argv(command))
    except OSError as exc:
        raise ShellExecutionError(f"failed to start shell: {exc}", interactive=True) from exc

    if completed.returncode != 0:
        raise ShellExecutionError(
            f"exit status {completed.returncode}",
            exit_code=completed.returncode,
            interactive=True,
        )


# ---------------------------------------------------------------------------
# Captured
# ---------------------------------------------------------------------------


def run_captured(command: str) -> str:
    """Run silently and return merged stdout/stderr, stripped."""
    logger.debug("captured: %s", command)
    try:
        completed = subprocess.run(
            shell_argv(command),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except OSError as exc:
        raise ShellExecutionError(f"failed to start shell: {exc}") from exc

    output = _decode(completed.stdout)
    if completed.returncode != 0:
        raise ShellExecutionError(
            f"exit status {completed.returncode}",
            exit_code=completed.returncode,
            output=output,
        )
    return output


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class _DimWriter:
    """Copies child output to a terminal stream, dimming it on first write."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.started = False

    def write(self, chunk: bytes) -> None:
        text = self._decoder.decode(chunk)
        if not text:
            return
        if not self.started:
            self._stream.write(ANSI_DIM)
            self.started = True
        self._stream.write(text)
        self._stream.flush()

    def reset(self) -> None:
        if self.started:
            self._stream.write(ANSI_RESET)
            self._stream.flush()


def _pump(pipe: IO[bytes], writer: _DimWriter, buffer: list[bytes], lock: threading.Lock) -> None:
    for chunk in iter(lambda: pipe.read1(_CHUNK_SIZE), b""):
        with lock:
            buffer.append(chunk)
            writer.write(chunk)
    pipe.close()


def run_streaming(command: str) -> str:
    """
    Run while streaming dimmed output to the terminal and capturing it.

    A KeyboardInterrupt while waiting kills the child and raises
    ShellExecutionError("interrupted") carrying whatever was captured.
    Terminal formatting is reset on every exit path.
    """
    logger.debug("streaming: %s", command)
    try:
        proc = subprocess.Popen(
            shell_argv(command),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise ShellExecutionError(f"failed to start shell: {exc}") from exc

    buffer: list[bytes] = []
    lock = threading.Lock()
    out_writer = _DimWriter(sys.stdout)
    err_writer = _DimWriter(sys.stderr)
    readers = [
        threading.Thread(target=_pump, args=(proc.stdout, out_writer, buffer, lock), daemon=True),
        threading.Thread(target=_pump, args=(proc.stderr, err_writer, buffer, lock), daemon=True),
    ]
    for reader in readers:
        reader.start()

    try:
        try:
            returncode = proc.wait()
        except KeyboardInterrupt:
            proc.kill()
            proc.wait()
            for reader in readers:
                reader.join(timeout=1)
            with lock:
                output = _decode(b"".join(buffer))
            raise ShellExecutionError("interrupted", output=output) from None

        for reader in readers:
            reader.join()
        output = _decode(b"".join(buffer))
    finally:
        with lock:
            out_writer.reset()
            err_writer.reset()

    if returncode != 0:
        raise ShellExecutionError(f"exit status {returncode}", exit_code=returncode, output=output)
    return output
