"""Deep freeze/thaw helpers for serialized snapshot data."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


def deep_freeze(value: Any) -> Any:
    """Return a read-only deep copy: mappings become proxies, sequences tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: deep_freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(item) for item in value)
    return value


def deep_thaw(value: Any) -> Any:
    """Return an independent mutable deep copy: mappings become dicts, sequences lists."""
    if isinstance(value, Mapping):
        return {key: deep_thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [deep_thaw(item) for item in value]
    return value


def is_frozen(value: Any) -> bool:
    """True when no mutable container is reachable from ``value``."""
    if isinstance(value, MappingProxyType):
        return all(is_frozen(item) for item in value.values())
    if isinstance(value, tuple):
        return all(is_frozen(item) for item in value)
    return not isinstance(value, (dict, list, set, bytearray))
