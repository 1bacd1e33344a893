"""Record/verify engine for Backspin."""

from backspinpack.engine.execution import (
    CapturedStreams,
    Command,
    ExecutionOutput,
    describe_command,
    execute_command,
    redirect_standard_streams,
)
from backspinpack.engine.mode import (
    parse_mode_override,
    read_mode_override,
    resolve_mode,
    validate_mode,
)
from backspinpack.engine.result import BackspinResult
from backspinpack.engine.runner import capture_block, run_command

__all__ = [
    "BackspinResult",
    "CapturedStreams",
    "Command",
    "ExecutionOutput",
    "capture_block",
    "describe_command",
    "execute_command",
    "parse_mode_override",
    "read_mode_override",
    "redirect_standard_streams",
    "resolve_mode",
    "run_command",
    "validate_mode",
]
