"""Configurable comparison of expected vs actual snapshots."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Union

from backspinpack.core.canonical import deep_thaw
from backspinpack.exceptions import MatcherConfigError

MatcherCallable = Callable[[Any, Any], Any]
MatcherConfig = Union[MatcherCallable, Mapping[str, MatcherCallable], None]

MATCHER_KEYS: tuple[str, ...] = ("all", "stdout", "stderr", "status")
COMPARED_FIELDS: tuple[str, ...] = ("stdout", "stderr", "status")
DEFAULT_FAILURE_LABELS = {
    "stdout": "stdout differs",
    "stderr": "stderr differs",
    "status": "exit status differs",
}


class Comparable(Protocol):
    """Anything exposing captured output plus its serialized mapping."""

    @property
    def stdout(self) -> str: ...

    @property
    def stderr(self) -> str: ...

    @property
    def status(self) -> int: ...

    def to_dict(self) -> Mapping[str, Any]: ...


@dataclass(frozen=True, slots=True)
class MatchCheck:
    """Outcome of one comparison dimension."""

    name: str
    passed: bool
    failure_label: str


def normalize_matcher_config(config: Any) -> MatcherConfig:
    """Validate a matcher configuration and return it in canonical form."""
    if config is None:
        return None
    if isinstance(config, Mapping):
        normalized: dict[str, MatcherCallable] = {}
        for key, value in config.items():
            if key not in MATCHER_KEYS:
                raise MatcherConfigError(
                    f"Invalid matcher key: {key}. Must be one of: {', '.join(MATCHER_KEYS)}"
                )
            if not callable(value):
                raise MatcherConfigError(f"Matcher for {key} must be callable")
            normalized[key] = value
        return normalized
    if callable(config):
        return config
    raise MatcherConfigError(
        f"Matcher must be a callable or a mapping, got {type(config).__name__}"
    )


class Matcher:
    """Decide whether two snapshots match under an optional configuration.

    Without configuration only stdout, stderr and status are compared, read
    straight from the snapshots. A single callable receives both serialized
    mappings. A mapping overrides individual fields: ``all`` receives both
    mappings, field keys receive that field's values, and every field that is
    not overridden is still compared exactly. All configured callables run on
    every evaluation and each receives its own mutable copy of its inputs.
    """

    def __init__(
        self,
        config: Any,
        expected: Comparable,
        actual: Comparable,
        *,
        expected_dict: Mapping[str, Any] | None = None,
        actual_dict: Mapping[str, Any] | None = None,
    ) -> None:
        self.config = normalize_matcher_config(config)
        self.expected = expected
        self.actual = actual
        self._expected_dict = expected_dict
        self._actual_dict = actual_dict
        self._checks: list[MatchCheck] | None = None

    def match(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def failure_reason(self) -> str:
        return ", ".join(check.failure_label for check in self.checks if not check.passed)

    @property
    def checks(self) -> list[MatchCheck]:
        if self._checks is None:
            self._checks = self._evaluate()
        return self._checks

    @property
    def expected_dict(self) -> Mapping[str, Any]:
        if self._expected_dict is None:
            self._expected_dict = self.expected.to_dict()
        return self._expected_dict

    @property
    def actual_dict(self) -> Mapping[str, Any]:
        if self._actual_dict is None:
            self._actual_dict = self.actual.to_dict()
        return self._actual_dict

    def _evaluate(self) -> list[MatchCheck]:
        if self.config is None:
            return [self._exact_check(field) for field in COMPARED_FIELDS]

        if not isinstance(self.config, Mapping):
            passed = self.config(deep_thaw(self.expected_dict), deep_thaw(self.actual_dict))
            return [MatchCheck(name="custom", passed=bool(passed), failure_label="custom matcher failed")]

        checks: list[MatchCheck] = []
        for key, matcher in self.config.items():
            if key == "all":
                passed = matcher(deep_thaw(self.expected_dict), deep_thaw(self.actual_dict))
                label = ":all matcher failed"
            else:
                passed = matcher(
                    deep_thaw(self.expected_dict.get(key)),
                    deep_thaw(self.actual_dict.get(key)),
                )
                label = f"{key} custom matcher failed"
            checks.append(MatchCheck(name=key, passed=bool(passed), failure_label=label))

        for field in COMPARED_FIELDS:
            if field not in self.config:
                checks.append(self._exact_check(field))
        return checks

    def _exact_check(self, field: str) -> MatchCheck:
        return MatchCheck(
            name=field,
            passed=getattr(self.expected, field) == getattr(self.actual, field),
            failure_label=DEFAULT_FAILURE_LABELS[field],
        )
