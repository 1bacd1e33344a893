"""Type definitions for Backspin core models."""

from __future__ import annotations

from enum import Enum
from typing import Literal


class CommandType(str, Enum):
    """Which collaborator produced a snapshot; values are the persisted tags."""

    PROCESS_CAPTURE = "Open3::Capture3"
    BLOCK_CAPTURE = "Backspin::Capturer"

    @classmethod
    def from_tag(cls, tag: object) -> "CommandType | None":
        for member in cls:
            if member.value == tag:
                return member
        return None


Mode = Literal["auto", "record", "verify"]
ResolvedMode = Literal["record", "verify"]
FilterScope = Literal["both", "record"]

MODES: tuple[str, ...] = ("auto", "record", "verify")
FILTER_SCOPES: tuple[str, ...] = ("both", "record")

CAPTURED_BLOCK_ARGS: tuple[str, ...] = ("<captured block>",)
