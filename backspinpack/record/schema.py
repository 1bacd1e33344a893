"""JSON schema and version validation for Backspin record files."""

from __future__ import annotations

from functools import lru_cache
import re
from typing import Any

from jsonschema import Draft202012Validator

from backspinpack.core.types import CommandType
from backspinpack.exceptions import RecordFormatError

SUPPORTED_MAJOR_VERSION = 4
CURRENT_FORMAT_VERSION = "4.1"
SUPPORTED_FORMAT_VERSIONS: tuple[str, ...] = ("4.0", "4.1")

_VERSION_PATTERN = re.compile(r"^(?P<major>\d+)\.(?P<minor>\d+)$")

_SNAPSHOT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["command_type", "args", "stdout", "stderr", "status"],
    "additionalProperties": True,
    "properties": {
        "command_type": {
            "type": "string",
            "enum": [member.value for member in CommandType],
        },
        "args": {
            "anyOf": [
                {"type": "string"},
                {"type": "array"},
            ],
        },
        "env": {
            "type": ["object", "null"],
            "additionalProperties": {"type": ["string", "null"]},
        },
        "stdout": {"type": ["string", "null"]},
        "stderr": {"type": ["string", "null"]},
        "status": {"type": ["integer", "null"]},
        "recorded_at": {"type": ["string", "null"]},
    },
}

_RECORD_SCHEMA_V4_0: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Backspin Record 4.0",
    "type": "object",
    "required": ["format_version", "snapshot"],
    "additionalProperties": True,
    "properties": {
        "format_version": {"type": "string", "pattern": r"^\d+\.\d+$"},
        "recorded_at": {"type": ["string", "null"]},
        "snapshot": _SNAPSHOT_SCHEMA,
    },
}

_RECORD_SCHEMA_V4_1: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Backspin Record 4.1",
    "type": "object",
    "required": [
        "format_version",
        "first_recorded_at",
        "recorded_at",
        "record_count",
        "snapshot",
    ],
    "additionalProperties": True,
    "properties": {
        "format_version": {"type": "string", "pattern": r"^\d+\.\d+$"},
        "first_recorded_at": {"type": "string"},
        "recorded_at": {"type": "string"},
        "record_count": {"type": "integer", "minimum": 1},
        "snapshot": _SNAPSHOT_SCHEMA,
    },
}

_SCHEMAS_BY_VERSION: dict[str, dict[str, Any]] = {
    "4.0": _RECORD_SCHEMA_V4_0,
    "4.1": _RECORD_SCHEMA_V4_1,
}


def parse_format_version(version: str) -> tuple[int, int]:
    """Parse a major.minor record format version."""
    match = _VERSION_PATTERN.fullmatch(version.strip())
    if match is None:
        raise RecordFormatError(f"Invalid record format version: {version!r}")
    return int(match.group("major")), int(match.group("minor"))


def is_version_supported(version: str) -> bool:
    try:
        parse_format_version(version)
    except RecordFormatError:
        return False
    return version.strip() in SUPPORTED_FORMAT_VERSIONS


@lru_cache(maxsize=4)
def load_record_schema(version: str) -> Draft202012Validator:
    """Return a compiled validator for a supported record format version."""
    schema = _SCHEMAS_BY_VERSION.get(version)
    if schema is None:
        raise RecordFormatError(f"No schema for record format version: {version}")
    return Draft202012Validator(schema)


def validate_record_data(data: Any) -> str:
    """Validate a loaded record document; return its normalized format version."""
    if not isinstance(data, dict):
        raise RecordFormatError(
            f"Invalid record format: expected a mapping, got {type(data).__name__}"
        )

    raw_version = data.get("format_version")
    if raw_version is None:
        raise RecordFormatError(
            f"Invalid record format: missing format_version "
            f"(expected version {CURRENT_FORMAT_VERSION})"
        )

    # YAML may hand back an unquoted version as a float.
    version = str(raw_version).strip()
    try:
        major, minor = parse_format_version(version)
    except RecordFormatError as error:
        raise RecordFormatError(
            f"Invalid record format: unparsable format_version {raw_version!r} "
            f"(expected version {CURRENT_FORMAT_VERSION})"
        ) from error

    if major != SUPPORTED_MAJOR_VERSION:
        raise RecordFormatError(
            f"Invalid record format: expected format version {CURRENT_FORMAT_VERSION}, "
            f"got {version}. Re-record to upgrade."
        )
    if not is_version_supported(version):
        _current_major, current_minor = parse_format_version(CURRENT_FORMAT_VERSION)
        if minor > current_minor:
            raise RecordFormatError(
                f"Invalid record format: format version {version} is newer than "
                f"supported version {CURRENT_FORMAT_VERSION}"
            )
        raise RecordFormatError(
            f"Invalid record format: unsupported format version {version} "
            f"(supported: {', '.join(SUPPORTED_FORMAT_VERSIONS)})"
        )

    if "snapshot" not in data or data["snapshot"] is None:
        raise RecordFormatError("Invalid record format: missing snapshot")

    snapshot = data["snapshot"]
    if isinstance(snapshot, dict) and CommandType.from_tag(snapshot.get("command_type")) is None:
        raise RecordFormatError(f"Unknown command type: {snapshot.get('command_type')}")

    validator = load_record_schema(version)
    errors = sorted(
        validator.iter_errors({**data, "format_version": version}),
        key=lambda err: [str(part) for part in err.path],
    )
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.path) or "$"
        raise RecordFormatError(f"Invalid record format at {location}: {first.message}")
    return version
