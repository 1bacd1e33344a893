"""Process execution and standard stream redirection collaborators."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
import io
import os
import shlex
import subprocess
import sys
import tempfile
from typing import IO, Any, Iterator, Union

from backspinpack.exceptions import CommandExecutionError

Command = Union[str, Sequence[str]]


@dataclass(frozen=True, slots=True)
class ExecutionOutput:
    """Captured output of one finished process."""

    stdout: str
    stderr: str
    status: int


@dataclass(slots=True)
class CapturedStreams:
    """Filled in when a redirection scope exits normally."""

    stdout: str = ""
    stderr: str = ""


def describe_command(command: Command) -> str:
    if isinstance(command, str):
        return command
    return shlex.join(str(part) for part in command)


def execute_command(command: Command, env: Mapping[str, str] | None = None) -> ExecutionOutput:
    """Run a command to completion.

    A string runs through the shell; a sequence runs directly. ``env`` is merged
    over the inherited environment.
    """
    shell = isinstance(command, str)
    merged_env = None if env is None else {**os.environ, **env}
    try:
        completed = subprocess.run(
            command if shell else list(command),
            shell=shell,
            env=merged_env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as error:
        raise CommandExecutionError(
            f"Could not execute command {describe_command(command)!r}: {error}"
        ) from error
    return ExecutionOutput(
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        status=completed.returncode,
    )


def _flush(*streams: Any) -> None:
    for stream in streams:
        if stream is not None:
            stream.flush()


def _fd_writer(fd: int) -> io.TextIOWrapper:
    return io.TextIOWrapper(
        io.FileIO(fd, "w", closefd=False),
        encoding="utf-8",
        line_buffering=True,
        write_through=True,
    )


def _read_captured(handle: IO[bytes]) -> str:
    handle.seek(0)
    return handle.read().decode("utf-8", errors="replace")


@contextmanager
def redirect_standard_streams() -> Iterator[CapturedStreams]:
    """Send everything written to stdout/stderr inside the block to temporary files.

    Both the ``sys`` stream objects and file descriptors 1 and 2 are redirected,
    so output from child processes and C extensions is captured too. The
    original streams are restored on every exit path.
    """
    captured = CapturedStreams()
    with tempfile.TemporaryFile() as out_file, tempfile.TemporaryFile() as err_file:
        saved_streams = (sys.stdout, sys.stderr)
        _flush(*saved_streams)
        saved_fds = (os.dup(1), os.dup(2))
        writers: list[io.TextIOWrapper] = []
        try:
            os.dup2(out_file.fileno(), 1)
            os.dup2(err_file.fileno(), 2)
            writers = [_fd_writer(1), _fd_writer(2)]
            sys.stdout, sys.stderr = writers
            yield captured
        finally:
            for writer in writers:
                writer.close()
            sys.stdout, sys.stderr = saved_streams
            os.dup2(saved_fds[0], 1)
            os.dup2(saved_fds[1], 2)
            for fd in saved_fds:
                os.close(fd)

        captured.stdout = _read_captured(out_file)
        captured.stderr = _read_captured(err_file)
