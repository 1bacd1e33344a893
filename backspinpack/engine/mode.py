"""Resolution of the effective record/verify mode."""

from __future__ import annotations

from collections.abc import Mapping
import os

from backspinpack.config import MODE_ENV_VAR
from backspinpack.core.types import MODES, Mode, ResolvedMode
from backspinpack.exceptions import ConfigurationError

REMOVED_MODES = frozenset({"playback"})


def validate_mode(requested: object) -> Mode:
    """Normalize a caller-supplied mode; reject anything outside auto/record/verify."""
    if isinstance(requested, str):
        normalized = requested.strip().lower()
        if normalized in REMOVED_MODES:
            raise ConfigurationError(
                "Playback mode is not supported. Use mode='verify' to re-run and "
                "compare, or mode='record' to re-record."
            )
        if normalized in MODES:
            return normalized  # type: ignore[return-value]
    raise ConfigurationError(
        f"Invalid mode: {requested!r}. Must be one of: {', '.join(MODES)}"
    )


def parse_mode_override(raw: str | None) -> Mode | None:
    """Parse an environment override; blank values count as unset."""
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if not normalized:
        return None
    if normalized not in MODES:
        raise ConfigurationError(
            f'Invalid {MODE_ENV_VAR} value: "{raw.strip()}". '
            f"Allowed values: {', '.join(MODES)}"
        )
    return normalized  # type: ignore[return-value]


def read_mode_override(environ: Mapping[str, str] | None = None) -> Mode | None:
    source = os.environ if environ is None else environ
    return parse_mode_override(source.get(MODE_ENV_VAR))


def resolve_mode(
    requested: Mode | str,
    *,
    record_exists: bool,
    env_override: Mode | None = None,
) -> ResolvedMode:
    """Pick ``record`` or ``verify``.

    An explicit non-auto request wins, then a non-auto environment override,
    then auto-detection from whether the record file already exists.
    """
    mode = validate_mode(requested)
    if mode != "auto":
        return mode  # type: ignore[return-value]
    if env_override is not None and env_override != "auto":
        return env_override  # type: ignore[return-value]
    return "verify" if record_exists else "record"
