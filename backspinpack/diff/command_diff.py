"""Verification of one actual snapshot against its recorded counterpart."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from backspinpack.core.canonical import deep_freeze
from backspinpack.core.snapshot import Snapshot, SnapshotFilter
from backspinpack.core.types import FILTER_SCOPES, FilterScope
from backspinpack.diff.formatting import (
    render_command_type_diff,
    render_status_diff,
    render_stream_diff,
)
from backspinpack.diff.matcher import Matcher, MatcherConfig, normalize_matcher_config
from backspinpack.exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class ComparisonView:
    """Read-only projection of a snapshot as it takes part in verification."""

    data: Mapping[str, Any]

    @property
    def command_type(self) -> Any:
        return self.data.get("command_type")

    @property
    def stdout(self) -> Any:
        return self.data.get("stdout")

    @property
    def stderr(self) -> Any:
        return self.data.get("stderr")

    @property
    def status(self) -> Any:
        return self.data.get("status")

    def to_dict(self) -> Mapping[str, Any]:
        return self.data


def build_comparison_view(
    snapshot: Snapshot,
    *,
    filter: SnapshotFilter | None = None,
) -> ComparisonView:
    if filter is None:
        return ComparisonView(data=snapshot.to_dict())
    filtered = snapshot.to_dict(filter)
    if not isinstance(filtered, Mapping):
        raise ConfigurationError(
            f"filter must return a mapping or None, got {type(filtered).__name__}"
        )
    return ComparisonView(data=deep_freeze(filtered))


class CommandDiff:
    """Compare an expected snapshot with an actual one.

    The filtered comparison views and the verification outcome are computed
    once; ``verified``, ``diff`` and ``summary`` all read the memoized values.
    """

    def __init__(
        self,
        expected: Snapshot,
        actual: Snapshot,
        *,
        matcher: MatcherConfig = None,
        filter: SnapshotFilter | None = None,
        filter_on: FilterScope = "both",
    ) -> None:
        if filter_on not in FILTER_SCOPES:
            raise ConfigurationError(
                f"Invalid filter_on: {filter_on!r}. Must be one of: {', '.join(FILTER_SCOPES)}"
            )
        self.expected = expected
        self.actual = actual
        self.filter = filter
        self.filter_on = filter_on
        self._matcher_config = normalize_matcher_config(matcher)
        self._views: tuple[ComparisonView, ComparisonView] | None = None
        self._matcher: Matcher | None = None
        self._verified: bool | None = None

    @property
    def expected_view(self) -> ComparisonView:
        return self._comparison_views()[0]

    @property
    def actual_view(self) -> ComparisonView:
        return self._comparison_views()[1]

    @property
    def matcher(self) -> Matcher:
        if self._matcher is None:
            expected_view, actual_view = self._comparison_views()
            self._matcher = Matcher(
                self._matcher_config,
                expected_view,
                actual_view,
                expected_dict=expected_view.to_dict(),
                actual_dict=actual_view.to_dict(),
            )
        return self._matcher

    @property
    def command_types_match(self) -> bool:
        return self.expected.command_type == self.actual.command_type

    @property
    def verified(self) -> bool:
        if self._verified is None:
            self._verified = self.command_types_match and self.matcher.match()
        return self._verified

    @property
    def failure_reason(self) -> str:
        if not self.command_types_match:
            return "command type mismatch"
        return self.matcher.failure_reason

    @property
    def diff(self) -> str | None:
        if self.verified:
            return None

        expected_view, actual_view = self._comparison_views()
        parts: list[str] = []
        if not self.command_types_match:
            parts.append(
                render_command_type_diff(
                    self.expected.command_type.value,
                    self.actual.command_type.value,
                )
            )
        if expected_view.stdout != actual_view.stdout:
            parts.append(render_stream_diff("stdout", expected_view.stdout, actual_view.stdout))
        if expected_view.stderr != actual_view.stderr:
            parts.append(render_stream_diff("stderr", expected_view.stderr, actual_view.stderr))
        if expected_view.status != actual_view.status:
            parts.append(render_status_diff(expected_view.status, actual_view.status))
        return "\n\n".join(parts)

    @property
    def summary(self) -> str:
        if self.verified:
            return "✓ Command verified"
        return f"✗ Command failed: {self.failure_reason}"

    def _comparison_views(self) -> tuple[ComparisonView, ComparisonView]:
        if self._views is None:
            active_filter = self.filter if self.filter_on == "both" else None
            self._views = (
                build_comparison_view(self.expected, filter=active_filter),
                build_comparison_view(self.actual, filter=active_filter),
            )
        return self._views
