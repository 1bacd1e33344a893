"""Stable public API surface for Backspin.

This module is the supported import path for library users.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable

from backspinpack import __version__
from backspinpack.config import (
    MODE_ENV_VAR,
    Configuration,
    configure,
    default_credential_patterns,
    get_configuration,
    reset_configuration,
    use_configuration,
)
from backspinpack.core import CommandType, FilterScope, Mode, Snapshot, SnapshotFilter
from backspinpack.diff import CommandDiff, Matcher, MatcherConfig
from backspinpack.engine import BackspinResult, capture_block, run_command
from backspinpack.exceptions import (
    BackspinError,
    CommandExecutionError,
    ConfigurationError,
    MatcherConfigError,
    RecordError,
    RecordFormatError,
    RecordNotFoundError,
    VerificationError,
)
from backspinpack.record import CURRENT_FORMAT_VERSION, Record


def run(
    command: str | Sequence[str] | None = None,
    *,
    name: str,
    env: Mapping[str, str] | None = None,
    mode: Mode = "auto",
    matcher: MatcherConfig = None,
    filter: SnapshotFilter | None = None,
    filter_on: FilterScope = "both",
    block: Callable[[], Any] | None = None,
    config: Configuration | None = None,
) -> BackspinResult:
    """Record a command's output, or verify it against the existing record.

    Args:
        command: Shell string (runs through the shell) or argument list.
        name: Record name, stored as ``<backspin_dir>/<name>.yml``.
        env: Extra environment variables merged over the current environment.
        mode: ``auto`` (verify when the record exists), ``record`` or ``verify``.
        matcher: Callable or mapping of callables overriding the comparison.
        filter: Callable transforming the serialized snapshot before save and,
            with ``filter_on="both"``, before comparison.
        filter_on: ``both`` or ``record``.
        block: Capture this callable's stdout/stderr instead of running a command.
        config: Configuration to use instead of the active one.

    Returns:
        Result of the record or verify operation.

    Raises:
        VerificationError: Verification failed and the configuration raises on
            failure.
    """
    if block is not None:
        if command is not None:
            raise ConfigurationError("Pass either a command or a block, not both")
        return capture_block(
            name,
            block,
            mode=mode,
            matcher=matcher,
            filter=filter,
            filter_on=filter_on,
            config=config,
        )
    if command is None:
        raise ConfigurationError("A command or a block is required")
    return run_command(
        command,
        name=name,
        env=env,
        mode=mode,
        matcher=matcher,
        filter=filter,
        filter_on=filter_on,
        config=config,
    )


def capture(
    name: str,
    block: Callable[[], Any],
    *,
    mode: Mode = "auto",
    matcher: MatcherConfig = None,
    filter: SnapshotFilter | None = None,
    filter_on: FilterScope = "both",
    config: Configuration | None = None,
) -> BackspinResult:
    """Record or verify everything ``block`` prints to stdout and stderr.

    The block's return value is available as ``result.output``.
    """
    return capture_block(
        name,
        block,
        mode=mode,
        matcher=matcher,
        filter=filter,
        filter_on=filter_on,
        config=config,
    )


__all__ = [
    "__version__",
    "CURRENT_FORMAT_VERSION",
    "MODE_ENV_VAR",
    "Mode",
    "FilterScope",
    "SnapshotFilter",
    "MatcherConfig",
    "Configuration",
    "CommandType",
    "Snapshot",
    "Matcher",
    "CommandDiff",
    "Record",
    "BackspinResult",
    "BackspinError",
    "ConfigurationError",
    "MatcherConfigError",
    "RecordError",
    "RecordNotFoundError",
    "RecordFormatError",
    "CommandExecutionError",
    "VerificationError",
    "run",
    "capture",
    "configure",
    "get_configuration",
    "reset_configuration",
    "use_configuration",
    "default_credential_patterns",
]
