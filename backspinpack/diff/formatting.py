"""Human-readable rendering for command diffs."""

from __future__ import annotations


def _chomp(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith(("\n", "\r")):
        return line[:-1]
    return line


def _lines(text: str) -> list[str]:
    parts = text.split("\n")
    lines = [f"{part}\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def render_line_diff(expected: str | None, actual: str | None) -> str:
    """Compare line by line, emitting ``-expected``/``+actual`` pairs for changed lines."""
    expected_lines = _lines(expected or "")
    actual_lines = _lines(actual or "")

    lines: list[str] = []
    for idx in range(max(len(expected_lines), len(actual_lines))):
        expected_line = expected_lines[idx] if idx < len(expected_lines) else None
        actual_line = actual_lines[idx] if idx < len(actual_lines) else None
        if expected_line == actual_line:
            continue
        if expected_line is not None:
            lines.append(f"-{_chomp(expected_line)}")
        if actual_line is not None:
            lines.append(f"+{_chomp(actual_line)}")
    return "\n".join(lines)


def render_stream_diff(stream: str, expected: str | None, actual: str | None) -> str:
    return f"[{stream}]\n{render_line_diff(expected, actual)}"


def render_status_diff(expected: object, actual: object) -> str:
    return f"Exit status: expected {expected}, got {actual}"


def render_command_type_diff(expected: object, actual: object) -> str:
    return f"Command type mismatch: expected {expected}, got {actual}"
