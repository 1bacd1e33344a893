"""Comparison of recorded and actual snapshots for Backspin."""

from backspinpack.diff.command_diff import CommandDiff, ComparisonView, build_comparison_view
from backspinpack.diff.formatting import (
    render_command_type_diff,
    render_line_diff,
    render_status_diff,
    render_stream_diff,
)
from backspinpack.diff.matcher import (
    COMPARED_FIELDS,
    MATCHER_KEYS,
    MatchCheck,
    Matcher,
    MatcherCallable,
    MatcherConfig,
    normalize_matcher_config,
)

__all__ = [
    "CommandDiff",
    "ComparisonView",
    "build_comparison_view",
    "Matcher",
    "MatchCheck",
    "MatcherCallable",
    "MatcherConfig",
    "MATCHER_KEYS",
    "COMPARED_FIELDS",
    "normalize_matcher_config",
    "render_line_diff",
    "render_stream_diff",
    "render_status_diff",
    "render_command_type_diff",
]
