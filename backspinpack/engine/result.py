"""Result object returned by ``run`` and ``capture``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from backspinpack.core.canonical import deep_thaw
from backspinpack.core.snapshot import Snapshot
from backspinpack.core.types import ResolvedMode
from backspinpack.diff.command_diff import CommandDiff


@dataclass(slots=True)
class BackspinResult:
    """Outcome of one record or verify operation."""

    mode: ResolvedMode
    record_path: Path
    actual: Snapshot
    expected: Snapshot | None = None
    command_diff: CommandDiff | None = None
    output: Any = None

    @property
    def recorded(self) -> bool:
        return self.mode == "record"

    @property
    def verified(self) -> bool | None:
        """``True``/``False`` after a verify, ``None`` after a record."""
        if self.recorded or self.command_diff is None:
            return None
        return self.command_diff.verified

    @property
    def diff(self) -> str | None:
        if self.verified is not False:
            return None
        return self.command_diff.diff if self.command_diff is not None else None

    @property
    def summary(self) -> str | None:
        if self.command_diff is None:
            return None
        return self.command_diff.summary

    @property
    def error_message(self) -> str | None:
        if self.verified is not False or self.command_diff is None:
            return None
        message = f"Output verification failed:\n\n{self.command_diff.summary}"
        diff = self.command_diff.diff
        if diff:
            message += f"\n{diff}"
        return message

    @property
    def success(self) -> bool:
        return self.actual.success

    @property
    def failure(self) -> bool:
        return not self.success

    @property
    def stdout(self) -> str:
        return self.actual.stdout

    @property
    def stderr(self) -> str:
        return self.actual.stderr

    @property
    def status(self) -> int:
        return self.actual.status

    @property
    def expected_stdout(self) -> str | None:
        return None if self.expected is None else self.expected.stdout

    @property
    def expected_stderr(self) -> str | None:
        return None if self.expected is None else self.expected.stderr

    @property
    def expected_status(self) -> int | None:
        return None if self.expected is None else self.expected.status

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mode": self.mode,
            "record_path": str(self.record_path),
            "actual": deep_thaw(self.actual.to_dict()),
            "expected": None if self.expected is None else deep_thaw(self.expected.to_dict()),
        }
        if self.verified is not None:
            payload["verified"] = self.verified
        if self.diff:
            payload["diff"] = self.diff
        return payload
