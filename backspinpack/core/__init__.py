"""Core models and immutable primitives for Backspin."""

from backspinpack.core.canonical import deep_freeze, deep_thaw, is_frozen
from backspinpack.core.snapshot import Snapshot, SnapshotFilter
from backspinpack.core.types import (
    CAPTURED_BLOCK_ARGS,
    FILTER_SCOPES,
    MODES,
    CommandType,
    FilterScope,
    Mode,
    ResolvedMode,
)

__all__ = [
    "CommandType",
    "Mode",
    "ResolvedMode",
    "FilterScope",
    "MODES",
    "FILTER_SCOPES",
    "CAPTURED_BLOCK_ARGS",
    "Snapshot",
    "SnapshotFilter",
    "deep_freeze",
    "deep_thaw",
    "is_frozen",
]
