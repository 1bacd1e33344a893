"""Immutable snapshot of one captured execution."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable

from backspinpack.config import Configuration, get_configuration
from backspinpack.core.canonical import deep_freeze, deep_thaw
from backspinpack.core.types import CommandType
from backspinpack.exceptions import RecordFormatError

SnapshotFilter = Callable[[dict[str, Any]], "dict[str, Any] | None"]


class Snapshot:
    """A single captured command or block execution.

    Credentials are scrubbed when the snapshot is built. The serialized form is
    computed once and deep-frozen; ``to_dict()`` always returns that same object,
    while ``to_dict(filter)`` hands the filter a fresh mutable copy.
    """

    __slots__ = (
        "_command_type",
        "_args",
        "_env",
        "_stdout",
        "_stderr",
        "_status",
        "_recorded_at",
        "_serialized",
    )

    def __init__(
        self,
        *,
        command_type: CommandType,
        args: str | Sequence[Any],
        env: Mapping[str, str] | None = None,
        stdout: str | None = "",
        stderr: str | None = "",
        status: int | None = 0,
        recorded_at: str | None = None,
        config: Configuration | None = None,
    ) -> None:
        if not isinstance(command_type, CommandType):
            raise TypeError(f"command_type must be a CommandType, got {type(command_type).__name__}")
        resolved = config or get_configuration()

        self._command_type = command_type
        self._args = deep_freeze(resolved.scrub_value(deep_thaw(args)))
        self._env = None if env is None else deep_freeze(resolved.scrub_value(deep_thaw(env)))
        self._stdout = resolved.scrub_text(stdout or "")
        self._stderr = resolved.scrub_text(stderr or "")
        self._status = int(status or 0)
        self._recorded_at = recorded_at
        self._serialized = self._build_serialized()

    @property
    def command_type(self) -> CommandType:
        return self._command_type

    @property
    def args(self) -> Any:
        return self._args

    @property
    def env(self) -> Mapping[str, str] | None:
        return self._env

    @property
    def stdout(self) -> str:
        return self._stdout

    @property
    def stderr(self) -> str:
        return self._stderr

    @property
    def status(self) -> int:
        return self._status

    @property
    def recorded_at(self) -> str | None:
        return self._recorded_at

    @property
    def success(self) -> bool:
        return self._status == 0

    @property
    def failure(self) -> bool:
        return not self.success

    def to_dict(self, filter: SnapshotFilter | None = None) -> Mapping[str, Any]:
        if filter is None:
            return self._serialized
        data = deep_thaw(self._serialized)
        filtered = filter(data)
        return data if filtered is None else filtered

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], *, config: Configuration | None = None) -> "Snapshot":
        command_type = CommandType.from_tag(raw.get("command_type"))
        if command_type is None:
            raise RecordFormatError(f"Unknown command type: {raw.get('command_type')}")
        return cls(
            command_type=command_type,
            args=raw.get("args"),
            env=raw.get("env"),
            stdout=raw.get("stdout"),
            stderr=raw.get("stderr"),
            status=raw.get("status"),
            recorded_at=raw.get("recorded_at"),
            config=config,
        )

    def _build_serialized(self) -> Mapping[str, Any]:
        data: dict[str, Any] = {
            "command_type": self._command_type.value,
            "args": self._args,
        }
        if self._env is not None:
            data["env"] = self._env
        data["stdout"] = self._stdout
        data["stderr"] = self._stderr
        data["status"] = self._status
        data["recorded_at"] = self._recorded_at
        return deep_freeze(data)

    def __repr__(self) -> str:
        return (
            f"Snapshot(command_type={self._command_type.value!r}, args={self._args!r}, "
            f"status={self._status})"
        )
