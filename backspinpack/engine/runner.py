"""Record/verify orchestration for commands and captured blocks."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from pathlib import Path
from typing import Any, Callable

from backspinpack.config import Configuration, get_configuration
from backspinpack.core.snapshot import Snapshot, SnapshotFilter
from backspinpack.core.types import CAPTURED_BLOCK_ARGS, FILTER_SCOPES, CommandType, FilterScope, Mode
from backspinpack.diff.command_diff import CommandDiff
from backspinpack.diff.matcher import MatcherConfig, normalize_matcher_config
from backspinpack.engine.execution import (
    Command,
    ExecutionOutput,
    execute_command,
    redirect_standard_streams,
)
from backspinpack.engine.mode import read_mode_override, resolve_mode, validate_mode
from backspinpack.engine.result import BackspinResult
from backspinpack.exceptions import (
    ConfigurationError,
    RecordFormatError,
    RecordNotFoundError,
    VerificationError,
)
from backspinpack.record.record import Record, build_record_path

# Produces the captured output plus the value handed back as ``result.output``.
Producer = Callable[[], "tuple[ExecutionOutput, Any]"]


def _log(config: Configuration, level: int, message: str, *args: Any) -> None:
    if config.logger is not None:
        config.logger.log(level, message, *args)


def _validate_command(command: Any) -> Command:
    if isinstance(command, str):
        if not command.strip():
            raise ConfigurationError("Command must be a non-empty string or sequence of strings")
        return command
    if isinstance(command, Sequence) and not isinstance(command, (bytes, bytearray)):
        parts = list(command)
        if not parts:
            raise ConfigurationError("Command must be a non-empty string or sequence of strings")
        for part in parts:
            if not isinstance(part, str):
                raise ConfigurationError(
                    f"Command arguments must be strings, got {type(part).__name__}"
                )
        return parts
    raise ConfigurationError(
        f"Command must be a string or sequence of strings, got {type(command).__name__}"
    )


def _validate_env(env: Any) -> dict[str, str] | None:
    if env is None:
        return None
    if not isinstance(env, Mapping):
        raise ConfigurationError(f"env must be a mapping, got {type(env).__name__}")
    for key, value in env.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ConfigurationError(f"env entries must map strings to strings: {key!r}")
    return dict(env)


def _validate_options(
    *,
    mode: Any,
    matcher: Any,
    filter: Any,
    filter_on: Any,
) -> tuple[Mode, MatcherConfig]:
    validated_mode = validate_mode(mode)
    if filter_on not in FILTER_SCOPES:
        raise ConfigurationError(
            f"Invalid filter_on: {filter_on!r}. Must be one of: {', '.join(FILTER_SCOPES)}"
        )
    if filter is not None and not callable(filter):
        raise ConfigurationError(f"filter must be callable, got {type(filter).__name__}")
    return validated_mode, normalize_matcher_config(matcher)


def _load_for_record(record_path: Path, config: Configuration) -> Record:
    try:
        return Record.load_or_create(record_path, config=config)
    except RecordFormatError as error:
        # Re-recording replaces an unreadable or outdated file.
        _log(config, logging.WARNING, "Replacing unreadable record %s: %s", record_path, error)
        return Record(record_path, config=config)


def _load_for_verify(record_path: Path, command_type: CommandType, config: Configuration) -> Snapshot:
    if not record_path.is_file():
        raise RecordNotFoundError(f"Record not found: {record_path}")
    record = Record.load_from_file(record_path, config=config)
    expected = record.snapshot
    if expected is None:
        raise RecordNotFoundError(f"No snapshot found in record: {record_path}")
    if expected.command_type != command_type:
        raise RecordFormatError(
            f"Expected {command_type.value} snapshot but record contains "
            f"{expected.command_type.value}: {record_path}"
        )
    return expected


def _perform(
    *,
    name: str,
    command_type: CommandType,
    args: Any,
    env: dict[str, str] | None,
    producer: Producer,
    mode: Mode,
    matcher: MatcherConfig,
    filter: SnapshotFilter | None,
    filter_on: FilterScope,
    config: Configuration,
) -> BackspinResult:
    record_path = build_record_path(name, config.backspin_dir)
    resolved = resolve_mode(
        mode,
        record_exists=record_path.is_file(),
        env_override=read_mode_override(),
    )
    _log(config, logging.DEBUG, "Backspin %s mode for %s", resolved, record_path)

    if resolved == "record":
        record = _load_for_record(record_path, config)
        captured, output = producer()
        actual = Snapshot(
            command_type=command_type,
            args=args,
            env=env,
            stdout=captured.stdout,
            stderr=captured.stderr,
            status=captured.status,
            recorded_at=config.now_iso(),
            config=config,
        )
        record.set_snapshot(actual).save(filter=filter)
        _log(config, logging.INFO, "Recorded %s (record_count=%s)", record_path, record.record_count)
        return BackspinResult(mode="record", record_path=record_path, actual=actual, output=output)

    expected = _load_for_verify(record_path, command_type, config)
    captured, output = producer()
    actual = Snapshot(
        command_type=command_type,
        args=args,
        env=env,
        stdout=captured.stdout,
        stderr=captured.stderr,
        status=captured.status,
        config=config,
    )
    command_diff = CommandDiff(
        expected,
        actual,
        matcher=matcher,
        filter=filter,
        filter_on=filter_on,
    )
    result = BackspinResult(
        mode="verify",
        record_path=record_path,
        actual=actual,
        expected=expected,
        command_diff=command_diff,
        output=output,
    )
    if command_diff.verified:
        _log(config, logging.INFO, "Verified %s", record_path)
        return result

    _log(config, logging.WARNING, "Verification failed for %s: %s", record_path, command_diff.summary)
    if config.raise_on_verification_failure:
        raise VerificationError(
            f"Backspin verification failed!\nRecord: {record_path}\n\n{result.error_message}",
            result=result,
        )
    return result


def run_command(
    command: Any,
    *,
    name: str,
    env: Mapping[str, str] | None = None,
    mode: Mode = "auto",
    matcher: MatcherConfig = None,
    filter: SnapshotFilter | None = None,
    filter_on: FilterScope = "both",
    config: Configuration | None = None,
) -> BackspinResult:
    """Record or verify the output of an external command."""
    resolved_config = config or get_configuration()
    validated_command = _validate_command(command)
    validated_env = _validate_env(env)
    validated_mode, normalized_matcher = _validate_options(
        mode=mode,
        matcher=matcher,
        filter=filter,
        filter_on=filter_on,
    )
    build_record_path(name, resolved_config.backspin_dir)

    def producer() -> tuple[ExecutionOutput, Any]:
        return execute_command(validated_command, validated_env), None

    return _perform(
        name=name,
        command_type=CommandType.PROCESS_CAPTURE,
        args=validated_command,
        env=validated_env,
        producer=producer,
        mode=validated_mode,
        matcher=normalized_matcher,
        filter=filter,
        filter_on=filter_on,
        config=resolved_config,
    )


def capture_block(
    name: str,
    block: Callable[[], Any],
    *,
    mode: Mode = "auto",
    matcher: MatcherConfig = None,
    filter: SnapshotFilter | None = None,
    filter_on: FilterScope = "both",
    config: Configuration | None = None,
) -> BackspinResult:
    """Record or verify everything ``block`` writes to stdout and stderr."""
    resolved_config = config or get_configuration()
    if not callable(block):
        raise ConfigurationError(f"block must be callable, got {type(block).__name__}")
    validated_mode, normalized_matcher = _validate_options(
        mode=mode,
        matcher=matcher,
        filter=filter,
        filter_on=filter_on,
    )
    build_record_path(name, resolved_config.backspin_dir)

    def producer() -> tuple[ExecutionOutput, Any]:
        with redirect_standard_streams() as captured:
            output = block()
        return ExecutionOutput(stdout=captured.stdout, stderr=captured.stderr, status=0), output

    return _perform(
        name=name,
        command_type=CommandType.BLOCK_CAPTURE,
        args=list(CAPTURED_BLOCK_ARGS),
        env=None,
        producer=producer,
        mode=validated_mode,
        matcher=normalized_matcher,
        filter=filter,
        filter_on=filter_on,
        config=resolved_config,
    )
