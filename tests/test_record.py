from __future__ import annotations

from datetime import datetime, timezone
import os
from pathlib import Path
import stat
from typing import Any, Callable

import pytest
import yaml

from backspinpack.config import Configuration
from backspinpack.core import CommandType, Snapshot
from backspinpack.exceptions import (
    ConfigurationError,
    RecordError,
    RecordFormatError,
    RecordNotFoundError,
)
from backspinpack.record import (
    CURRENT_FORMAT_VERSION,
    Record,
    build_record_path,
    is_version_supported,
    parse_format_version,
    validate_record_data,
)


def _write_yaml(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


def _set_clock(config: Configuration, year: int, month: int, day: int) -> None:
    moment = datetime(year, month, day, 10, 0, 0, tzinfo=timezone.utc)
    config.clock = lambda: moment


def _snapshot_data(**overrides: Any) -> dict[str, Any]:
    data = {
        "command_type": "Open3::Capture3",
        "args": ["echo", "old"],
        "stdout": "old\n",
        "stderr": "",
        "status": 0,
        "recorded_at": "2026-01-01T10:00:00Z",
    }
    data.update(overrides)
    return data


def test_save_and_reload_round_trip(
    tmp_path: Path,
    frozen_clock: datetime,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "records" / "echo.yml"
    record = Record.load_or_create(path)
    assert record.exists() is False
    assert record.is_empty() is True

    snapshot = make_snapshot(env={"LANG": "C"}, recorded_at="2026-01-01T10:00:00Z")
    record.set_snapshot(snapshot).save()

    loaded = Record.load_from_file(path)
    assert loaded.exists() is True
    assert loaded.is_empty() is False
    assert loaded.snapshot is not None
    assert dict(loaded.snapshot.to_dict()["env"]) == {"LANG": "C"}
    assert loaded.snapshot.to_dict() == snapshot.to_dict()
    assert loaded.format_version == CURRENT_FORMAT_VERSION
    assert loaded.record_count == 1


def test_saved_document_layout(
    tmp_path: Path,
    frozen_clock: datetime,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "layout.yml"
    Record(path).set_snapshot(make_snapshot(recorded_at="2025-06-01T00:00:00Z")).save()

    data = yaml.safe_load(path.read_text(encoding="utf-8"))

    assert list(data) == [
        "format_version",
        "first_recorded_at",
        "recorded_at",
        "record_count",
        "snapshot",
    ]
    assert data["format_version"] == "4.1"
    assert data["first_recorded_at"] == "2026-01-01T10:00:00Z"
    assert data["recorded_at"] == data["snapshot"]["recorded_at"]
    assert data["record_count"] == 1
    assert "env" not in data["snapshot"]


def test_resave_keeps_first_recorded_at_and_bumps_count(
    tmp_path: Path,
    backspin_config: Configuration,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "rerun.yml"
    _set_clock(backspin_config, 2026, 1, 1)
    Record.load_or_create(path).set_snapshot(
        make_snapshot(stdout="first\n", recorded_at="2026-01-01T10:00:00Z")
    ).save()

    _set_clock(backspin_config, 2026, 2, 1)
    record = Record.load_or_create(path)
    record.set_snapshot(make_snapshot(stdout="second\n", recorded_at="2026-02-01T10:00:00Z"))
    record.save()

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["first_recorded_at"] == "2026-01-01T10:00:00Z"
    assert data["recorded_at"] == "2026-02-01T10:00:00Z"
    assert data["record_count"] == 2
    assert data["snapshot"]["stdout"] == "second\n"


def test_upgrades_4_0_record_on_resave(
    tmp_path: Path,
    backspin_config: Configuration,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "legacy.yml"
    _write_yaml(
        path,
        {
            "format_version": "4.0",
            "recorded_at": "2026-01-01T10:00:00Z",
            "snapshot": _snapshot_data(),
        },
    )

    record = Record.load_or_create(path)
    assert record.format_version == "4.0"
    assert record.first_recorded_at == "2026-01-01T10:00:00Z"

    _set_clock(backspin_config, 2026, 2, 1)
    record.set_snapshot(make_snapshot(stdout="new\n", recorded_at="2026-02-01T10:00:00Z"))
    record.save()

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["format_version"] == "4.1"
    assert data["first_recorded_at"] == "2026-01-01T10:00:00Z"
    assert data["recorded_at"] == "2026-02-01T10:00:00Z"
    assert data["record_count"] == 2


def test_resave_of_loaded_record_stamps_current_time(
    tmp_path: Path,
    backspin_config: Configuration,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "stamped.yml"
    _set_clock(backspin_config, 2026, 1, 1)
    Record(path).set_snapshot(make_snapshot()).save()

    _set_clock(backspin_config, 2026, 3, 1)
    record = Record.load_from_file(path)
    record.save()

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["first_recorded_at"] == "2026-01-01T10:00:00Z"
    assert data["recorded_at"] == "2026-03-01T10:00:00Z"
    assert data["snapshot"]["recorded_at"] == "2026-03-01T10:00:00Z"
    assert data["record_count"] == 2
    assert record.recorded_at == "2026-03-01T10:00:00Z"


def test_old_snapshot_timestamp_does_not_backdate_first_save(
    tmp_path: Path,
    frozen_clock: datetime,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "backdated.yml"
    Record(path).set_snapshot(make_snapshot(recorded_at="2020-01-01T00:00:00Z")).save()

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["first_recorded_at"] == "2026-01-01T10:00:00Z"
    assert data["recorded_at"] == "2026-01-01T10:00:00Z"


def test_empty_record_file_loads_as_empty_record(tmp_path: Path) -> None:
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")

    record = Record.load_or_create(path)

    assert record.exists() is True
    assert record.is_empty() is True
    assert record.record_count == 0
    assert record.format_version is None
    assert Record.load_from_file(path).is_empty() is True


def test_saved_record_follows_umask(tmp_path: Path, make_snapshot: Callable[..., Snapshot]) -> None:
    path = tmp_path / "mode.yml"
    previous = os.umask(0o022)
    try:
        Record(path).set_snapshot(make_snapshot()).save()
    finally:
        os.umask(previous)

    assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_unquoted_timestamps_and_float_version_are_normalized(tmp_path: Path) -> None:
    path = tmp_path / "handwritten.yml"
    path.write_text(
        "format_version: 4.1\n"
        "first_recorded_at: 2026-01-01T10:00:00Z\n"
        "recorded_at: 2026-01-02T10:00:00Z\n"
        "record_count: 3\n"
        "snapshot:\n"
        "  command_type: Open3::Capture3\n"
        "  args: echo hi\n"
        "  stdout: \"hi\\n\"\n"
        "  stderr: ''\n"
        "  status: 0\n"
        "  recorded_at: 2026-01-02T10:00:00Z\n",
        encoding="utf-8",
    )

    record = Record.load_from_file(path)

    assert record.format_version == "4.1"
    assert record.first_recorded_at == "2026-01-01T10:00:00Z"
    assert record.recorded_at == "2026-01-02T10:00:00Z"
    assert record.record_count == 3
    assert record.snapshot is not None
    assert record.snapshot.args == "echo hi"
    assert record.snapshot.recorded_at == "2026-01-02T10:00:00Z"


def test_unsupported_major_version_names_expected_version(tmp_path: Path) -> None:
    path = tmp_path / "old.yml"
    _write_yaml(path, {"format_version": "3.0", "snapshot": _snapshot_data()})

    with pytest.raises(RecordFormatError, match=r"expected format version 4\.1, got 3\.0"):
        Record.load_from_file(path)


def test_legacy_multi_command_record_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "legacy_commands.yml"
    _write_yaml(
        path,
        {
            "format_version": "2.0",
            "first_recorded_at": "2026-01-01T10:00:00Z",
            "commands": [_snapshot_data()],
        },
    )

    with pytest.raises(RecordFormatError, match="Re-record to upgrade"):
        Record.load_from_file(path)


@pytest.mark.parametrize(
    ("document", "pattern"),
    [
        ({"snapshot": _snapshot_data()}, "missing format_version"),
        ({"format_version": "four", "snapshot": _snapshot_data()}, "unparsable format_version"),
        ({"format_version": "4.9", "snapshot": _snapshot_data()}, "newer than supported"),
        ({"format_version": "4.0"}, "missing snapshot"),
        (
            {"format_version": "4.0", "snapshot": _snapshot_data(command_type="Kernel::System")},
            "Unknown command type",
        ),
        (
            {"format_version": "4.1", "recorded_at": "x", "snapshot": _snapshot_data()},
            "first_recorded_at",
        ),
        (["not", "a", "mapping"], "expected a mapping"),
    ],
)
def test_invalid_documents_raise_format_errors(document: Any, pattern: str) -> None:
    with pytest.raises(RecordFormatError, match=pattern):
        validate_record_data(document)


def test_unparsable_yaml_is_a_format_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.yml"
    path.write_text("format_version: [unclosed\n", encoding="utf-8")

    with pytest.raises(RecordFormatError, match="Invalid record format"):
        Record.load_from_file(path)


def test_load_from_file_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(RecordNotFoundError, match="Record not found"):
        Record.load_from_file(tmp_path / "missing.yml")


def test_save_without_snapshot_fails(tmp_path: Path) -> None:
    with pytest.raises(RecordError, match="without a snapshot"):
        Record(tmp_path / "empty.yml").save()


def test_save_applies_filter_to_persisted_data(
    tmp_path: Path,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "filtered.yml"
    snapshot = make_snapshot(stdout="took 42ms\n")

    def strip_timing(data: dict[str, Any]) -> None:
        data["stdout"] = "took <n>ms\n"

    Record(path).set_snapshot(snapshot).save(filter=strip_timing)

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["snapshot"]["stdout"] == "took <n>ms\n"
    assert snapshot.stdout == "took 42ms\n"


def test_failed_save_leaves_previous_file_and_metadata(
    tmp_path: Path,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    path = tmp_path / "atomic.yml"
    record = Record(path)
    record.set_snapshot(make_snapshot(recorded_at="2026-01-01T10:00:00Z")).save()
    before = path.read_text(encoding="utf-8")

    record.set_snapshot(make_snapshot(stdout="next\n"))
    with pytest.raises(RecordError, match="Could not serialize"):
        record.save(filter=lambda data: {**data, "stdout": object()})

    assert path.read_text(encoding="utf-8") == before
    assert record.record_count == 1
    assert sorted(p.name for p in tmp_path.iterdir()) == ["atomic.yml"]


def test_filter_must_return_mapping_on_save(
    tmp_path: Path,
    make_snapshot: Callable[..., Snapshot],
) -> None:
    record = Record(tmp_path / "bad_filter.yml").set_snapshot(make_snapshot())

    with pytest.raises(ConfigurationError, match="filter must return a mapping"):
        record.save(filter=lambda data: ["not", "a", "mapping"])


def test_reload_and_clear(tmp_path: Path, make_snapshot: Callable[..., Snapshot]) -> None:
    path = tmp_path / "reload.yml"
    record = Record(path)
    record.set_snapshot(make_snapshot()).save()

    record.clear()
    assert record.is_empty() is True
    assert record.exists() is True

    record.reload()
    assert record.snapshot is not None
    assert record.snapshot.command_type is CommandType.PROCESS_CAPTURE
    assert record.record_count == 1


def test_build_record_path(tmp_path: Path) -> None:
    assert build_record_path("echo_test", tmp_path) == tmp_path / "echo_test.yml"
    assert build_record_path("nested/cli/help", tmp_path) == tmp_path / "nested" / "cli" / "help.yml"


@pytest.mark.parametrize("name", ["", "   ", "/etc/passwd", "../escape", "a/../../b"])
def test_build_record_path_rejects_unsafe_names(name: str, tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        build_record_path(name, tmp_path)


def test_parse_format_version() -> None:
    assert parse_format_version("4.1") == (4, 1)
    with pytest.raises(RecordFormatError):
        parse_format_version("4")


def test_is_version_supported() -> None:
    assert is_version_supported("4.1") is True
    assert is_version_supported(" 4.0 ") is True
    assert is_version_supported("4.2") is False
    assert is_version_supported("3.0") is False
    assert is_version_supported("four") is False
