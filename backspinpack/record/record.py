"""Persistence of a single snapshot per YAML record file."""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import suppress
from datetime import date, datetime, timezone
import os
from pathlib import Path, PurePath
from typing import Any

import yaml

from backspinpack.config import Configuration, get_configuration
from backspinpack.core.canonical import deep_thaw
from backspinpack.core.snapshot import Snapshot, SnapshotFilter
from backspinpack.exceptions import (
    ConfigurationError,
    RecordError,
    RecordFormatError,
    RecordNotFoundError,
)
from backspinpack.record.schema import CURRENT_FORMAT_VERSION, validate_record_data

RECORD_SUFFIX = ".yml"


def build_record_path(name: str, base_dir: str | Path) -> Path:
    """Map a record name to ``<base_dir>/<name>.yml``."""
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError("Record name must be a non-empty string")
    relative = PurePath(name)
    if relative.is_absolute() or relative.anchor:
        raise ConfigurationError(f"Record name must be a relative path: {name}")
    if ".." in relative.parts:
        raise ConfigurationError(f"Record name must not contain '..' segments: {name}")
    return Path(base_dir) / f"{name}{RECORD_SUFFIX}"


def _coerce_timestamps(value: Any) -> Any:
    # safe_load turns unquoted ISO-8601 scalars into datetime objects.
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
            return value.isoformat() + "Z"
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _coerce_timestamps(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_coerce_timestamps(item) for item in value]
    return value


class Record:
    """One record file holding at most one snapshot plus its recording metadata."""

    def __init__(self, path: str | Path, *, config: Configuration | None = None) -> None:
        self.path = Path(path)
        self.config = config or get_configuration()
        self.snapshot: Snapshot | None = None
        self.format_version: str | None = None
        self.first_recorded_at: str | None = None
        self.recorded_at: str | None = None
        self.record_count = 0

    @classmethod
    def load_or_create(cls, path: str | Path, *, config: Configuration | None = None) -> "Record":
        record = cls(path, config=config)
        if record.exists():
            record._load()
        return record

    @classmethod
    def load_from_file(cls, path: str | Path, *, config: Configuration | None = None) -> "Record":
        record = cls(path, config=config)
        if not record.exists():
            raise RecordNotFoundError(f"Record not found: {record.path}")
        record._load()
        return record

    def exists(self) -> bool:
        return self.path.is_file()

    def is_empty(self) -> bool:
        return self.snapshot is None

    def set_snapshot(self, snapshot: Snapshot) -> "Record":
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"snapshot must be a Snapshot, got {type(snapshot).__name__}")
        self.snapshot = snapshot
        return self

    def save(self, *, filter: SnapshotFilter | None = None) -> Path:
        """Write the snapshot with bumped metadata, replacing the file atomically."""
        if self.snapshot is None:
            raise RecordError(f"Cannot save record without a snapshot: {self.path}")

        snapshot_data = self.snapshot.to_dict(filter)
        if not isinstance(snapshot_data, Mapping):
            raise ConfigurationError(
                f"filter must return a mapping or None, got {type(snapshot_data).__name__}"
            )
        snapshot_data = deep_thaw(snapshot_data)

        recorded_at = self.config.now_iso()
        if "recorded_at" in snapshot_data:
            snapshot_data["recorded_at"] = recorded_at
        first_recorded_at = self.first_recorded_at or recorded_at
        record_count = self.record_count + 1

        document = {
            "format_version": CURRENT_FORMAT_VERSION,
            "first_recorded_at": first_recorded_at,
            "recorded_at": recorded_at,
            "record_count": record_count,
            "snapshot": snapshot_data,
        }
        self._write_atomic(document)

        self.format_version = CURRENT_FORMAT_VERSION
        self.first_recorded_at = first_recorded_at
        self.recorded_at = recorded_at
        self.record_count = record_count
        return self.path

    def reload(self) -> "Record":
        self.clear()
        self.format_version = None
        self.first_recorded_at = None
        self.recorded_at = None
        self.record_count = 0
        if self.exists():
            self._load()
        return self

    def clear(self) -> None:
        self.snapshot = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "format_version": self.format_version,
            "first_recorded_at": self.first_recorded_at,
            "recorded_at": self.recorded_at,
            "record_count": self.record_count,
            "snapshot": None if self.snapshot is None else deep_thaw(self.snapshot.to_dict()),
        }

    def _load(self) -> None:
        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as error:
            raise RecordFormatError(f"Record is not valid UTF-8 text: {self.path}") from error

        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as error:
            raise RecordFormatError(f"Invalid record format: {self.path} ({error})") from error

        if data is None:
            # An empty file exists but holds no snapshot yet.
            return

        data = _coerce_timestamps(data)
        version = validate_record_data(data)
        snapshot = Snapshot.from_dict(data["snapshot"], config=self.config)

        self.snapshot = snapshot
        self.format_version = version
        self.recorded_at = data.get("recorded_at") or snapshot.recorded_at
        if version == CURRENT_FORMAT_VERSION:
            self.first_recorded_at = data["first_recorded_at"]
            self.record_count = int(data["record_count"])
        else:
            # 4.0 files predate the bookkeeping fields; the existing file counts once.
            self.first_recorded_at = self.recorded_at
            self.record_count = 1

    def _write_atomic(self, document: dict[str, Any]) -> None:
        try:
            text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
        except yaml.YAMLError as error:
            raise RecordError(f"Could not serialize record {self.path}: {error}") from error

        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            with temp_path.open("w", encoding="utf-8", newline="\n") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            with suppress(FileNotFoundError):
                temp_path.unlink()
            raise

    def __repr__(self) -> str:
        return f"Record(path={str(self.path)!r}, record_count={self.record_count})"
