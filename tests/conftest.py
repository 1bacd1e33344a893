from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from backspinpack.config import MODE_ENV_VAR, Configuration, reset_configuration
from backspinpack.core import CommandType, Snapshot


@pytest.fixture(autouse=True)
def backspin_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Configuration]:
    monkeypatch.delenv(MODE_ENV_VAR, raising=False)
    config = reset_configuration()
    config.backspin_dir = tmp_path / "backspin"
    yield config
    reset_configuration()


@pytest.fixture()
def frozen_clock(backspin_config: Configuration) -> datetime:
    moment = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    backspin_config.clock = lambda: moment
    return moment


SnapshotFactory = Callable[..., Snapshot]


def _make_snapshot(**overrides: Any) -> Snapshot:
    fields: dict[str, Any] = {
        "command_type": CommandType.PROCESS_CAPTURE,
        "args": ["echo", "hello"],
        "stdout": "hello\n",
        "stderr": "",
        "status": 0,
    }
    fields.update(overrides)
    return Snapshot(**fields)


@pytest.fixture()
def make_snapshot() -> SnapshotFactory:
    return _make_snapshot
