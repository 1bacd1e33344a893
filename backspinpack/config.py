"""Process-wide configuration and credential scrubbing for Backspin."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from pathlib import Path
import re
from typing import Any, Callable, Iterator

from backspinpack.exceptions import ConfigurationError

MODE_ENV_VAR = "BACKSPIN_MODE"
DEFAULT_LOGGER_NAME = "backspin"


def default_credential_patterns() -> list[re.Pattern[str]]:
    """Return a fresh list of the built-in credential patterns."""
    return [
        # AWS
        re.compile(r"AKIA[0-9A-Z]{16}"),
        re.compile(r"aws_secret_access_key\s*[:=]\s*[\"']?([A-Za-z0-9/+=]{40})[\"']?", re.IGNORECASE),
        re.compile(r"aws_session_token\s*[:=]\s*[\"']?([A-Za-z0-9/+=]+)[\"']?", re.IGNORECASE),
        # Google Cloud
        re.compile(r"AIza[0-9A-Za-z\-_]{35}"),
        re.compile(r"[0-9]+-[0-9A-Za-z_]{32}\.apps\.googleusercontent\.com"),
        re.compile(r"-----BEGIN (RSA )?PRIVATE KEY-----"),
        # Generic
        re.compile(r"api[_-]?key\s*[:=]\s*[\"']?([A-Za-z0-9\-_]{20,})[\"']?", re.IGNORECASE),
        re.compile(r"auth[_-]?token\s*[:=]\s*[\"']?([A-Za-z0-9\-_]{20,})[\"']?", re.IGNORECASE),
        re.compile(r"Bearer\s+([A-Za-z0-9\-_]+)"),
        re.compile(r"password\s*[:=]\s*[\"']?([^\"'\s]{8,})[\"']?", re.IGNORECASE),
        re.compile(r"-p([^\"'\s]{8,})"),
        re.compile(r"secret\s*[:=]\s*[\"']?([A-Za-z0-9\-_]{20,})[\"']?", re.IGNORECASE),
    ]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_backspin_dir() -> Path:
    return Path.cwd() / "fixtures" / "backspin"


@dataclass(slots=True)
class Configuration:
    """Settings threaded through snapshots, records and the engine."""

    scrub_credentials: bool = True
    raise_on_verification_failure: bool = True
    backspin_dir: Path = field(default_factory=_default_backspin_dir)
    credential_patterns: list[re.Pattern[str]] = field(default_factory=default_credential_patterns)
    logger: logging.Logger | None = field(
        default_factory=lambda: logging.getLogger(DEFAULT_LOGGER_NAME)
    )
    clock: Callable[[], datetime] = _utcnow

    def __post_init__(self) -> None:
        self.backspin_dir = Path(self.backspin_dir)

    def add_credential_pattern(self, pattern: str | re.Pattern[str]) -> None:
        if isinstance(pattern, str):
            try:
                pattern = re.compile(pattern)
            except re.error as error:
                raise ConfigurationError(
                    f"Invalid credential pattern: {pattern!r} ({error})"
                ) from error
        elif not isinstance(pattern, re.Pattern):
            raise ConfigurationError(
                f"Credential pattern must be a string or compiled regex, got {type(pattern).__name__}"
            )
        self.credential_patterns.append(pattern)

    def clear_credential_patterns(self) -> None:
        self.credential_patterns = []

    def reset_credential_patterns(self) -> None:
        self.credential_patterns = default_credential_patterns()

    def now_iso(self) -> str:
        """Current clock time as an ISO-8601 UTC string with a ``Z`` suffix."""
        current = self.clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        current = current.astimezone(timezone.utc).replace(microsecond=0)
        return current.isoformat().replace("+00:00", "Z")

    def scrub_text(self, text: str) -> str:
        """Mask every credential match with asterisks of the same length."""
        if not self.scrub_credentials or not text:
            return text
        scrubbed = text
        for pattern in self.credential_patterns:
            scrubbed = pattern.sub(lambda match: "*" * len(match.group(0)), scrubbed)
        return scrubbed

    def scrub_value(self, value: Any) -> Any:
        """Scrub strings nested in sequences and mappings; other values pass through."""
        if not self.scrub_credentials:
            return value
        if isinstance(value, str):
            return self.scrub_text(value)
        if isinstance(value, (list, tuple)):
            return [self.scrub_value(item) for item in value]
        if isinstance(value, dict):
            return {key: self.scrub_value(item) for key, item in value.items()}
        return value


_DEFAULT_CONFIGURATION = Configuration()
_ACTIVE_CONFIGURATION: ContextVar[Configuration | None] = ContextVar(
    "backspin_active_configuration",
    default=None,
)


def get_configuration() -> Configuration:
    """Resolve the configuration for the current context."""
    active = _ACTIVE_CONFIGURATION.get()
    if active is not None:
        return active
    return _DEFAULT_CONFIGURATION


def configure(**changes: Any) -> Configuration:
    """Update attributes of the current configuration in place."""
    config = get_configuration()
    for key, value in changes.items():
        if key not in Configuration.__dataclass_fields__:
            raise ConfigurationError(f"Unknown configuration option: {key}")
        setattr(config, key, Path(value) if key == "backspin_dir" else value)
    return config


def reset_configuration() -> Configuration:
    """Restore defaults for the process-wide configuration (for tests)."""
    global _DEFAULT_CONFIGURATION
    _DEFAULT_CONFIGURATION = Configuration()
    _ACTIVE_CONFIGURATION.set(None)
    return _DEFAULT_CONFIGURATION


@contextmanager
def use_configuration(config: Configuration | None = None, **changes: Any) -> Iterator[Configuration]:
    """Activate a configuration (a copy of the current one by default) for a block."""
    base = config if config is not None else replace(
        get_configuration(),
        credential_patterns=list(get_configuration().credential_patterns),
    )
    if changes:
        unknown = sorted(set(changes) - set(Configuration.__dataclass_fields__))
        if unknown:
            raise ConfigurationError("Unknown configuration option(s): " + ", ".join(unknown))
        base = replace(base, **changes)
    token = _ACTIVE_CONFIGURATION.set(base)
    try:
        yield base
    finally:
        _ACTIVE_CONFIGURATION.reset(token)
