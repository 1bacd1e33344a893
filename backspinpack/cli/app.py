import json
from importlib.metadata import PackageNotFoundError, version as package_version
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer

from backspinpack.config import get_configuration, use_configuration
from backspinpack.engine import BackspinResult, describe_command, run_command
from backspinpack.exceptions import BackspinError, ConfigurationError
from backspinpack.record import (
    CURRENT_FORMAT_VERSION,
    RECORD_SUFFIX,
    Record,
    build_record_path,
)

app = typer.Typer(help="Backspin CLI characterization testing")


@dataclass(slots=True)
class _OutputOptions:
    quiet: bool = False
    no_color: bool = False
    stable_json: bool = True


_OUTPUT_OPTIONS = _OutputOptions()


def _resolve_cli_version() -> str:
    try:
        return package_version("backspin")
    except PackageNotFoundError:
        from backspinpack import __version__ as local_version

        return local_version


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(_resolve_cli_version(), color=False)
    raise typer.Exit()


@app.callback()
def app_options(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show Backspin version and exit.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Suppress non-error text output.",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable ANSI color output.",
    ),
    stable_json: bool = typer.Option(
        True,
        "--stable-json/--pretty-json",
        help="Emit stable compact JSON (or pretty JSON).",
    ),
) -> None:
    """Global output controls for all CLI commands."""
    _OUTPUT_OPTIONS.quiet = quiet
    _OUTPUT_OPTIONS.no_color = no_color
    _OUTPUT_OPTIONS.stable_json = stable_json


def _echo(message: str, *, err: bool = False, force: bool = False) -> None:
    if _OUTPUT_OPTIONS.quiet and not err and not force:
        return
    typer.echo(message, err=err, color=not _OUTPUT_OPTIONS.no_color)


def _echo_json(payload: dict[str, Any], *, err: bool = False) -> None:
    if _OUTPUT_OPTIONS.stable_json:
        rendered = json.dumps(
            payload,
            ensure_ascii=True,
            sort_keys=True,
            separators=(",", ":"),
        )
    else:
        rendered = json.dumps(
            payload,
            ensure_ascii=True,
            sort_keys=True,
            indent=2,
        )
    typer.echo(rendered, err=err, color=not _OUTPUT_OPTIONS.no_color)


def _fail(message: str, *, json_output: bool, extra: dict[str, Any] | None = None) -> None:
    if json_output:
        _echo_json({"status": "error", "exit_code": 1, "message": message, **(extra or {})})
    else:
        _echo(message, err=True)


def _parse_env_assignments(assignments: list[str]) -> dict[str, str] | None:
    if not assignments:
        return None
    env: dict[str, str] = {}
    for assignment in assignments:
        key, separator, value = assignment.partition("=")
        if not separator or not key.strip():
            raise ConfigurationError(f"Invalid --env value: {assignment!r}. Expected KEY=VALUE.")
        env[key.strip()] = value
    return env


def _resolve_record_target(target: str, backspin_dir: Path | None) -> Path:
    candidate = Path(target)
    if candidate.suffix == RECORD_SUFFIX or candidate.is_file():
        return candidate
    base_dir = backspin_dir if backspin_dir is not None else get_configuration().backspin_dir
    return build_record_path(target, base_dir)


def _run_payload(result: BackspinResult) -> dict[str, Any]:
    if result.recorded:
        status = "recorded"
    else:
        status = "pass" if result.verified else "fail"
    payload = {
        **result.to_dict(),
        "status": status,
        "exit_code": 1 if status == "fail" else 0,
    }
    if result.summary is not None:
        payload["summary"] = result.summary
    return payload


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
    }
)
def run(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Record name, relative to the record directory."),
    mode: str = typer.Option(
        "auto",
        "--mode",
        help="auto (verify when the record exists), record or verify.",
    ),
    backspin_dir: Path | None = typer.Option(
        None,
        "--dir",
        help="Record directory (default: ./fixtures/backspin).",
    ),
    env: list[str] | None = typer.Option(
        None,
        "--env",
        help="Extra environment variable for the command, as KEY=VALUE. Repeatable.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable result.",
    ),
) -> None:
    """Record or verify a command given after `--`."""
    command = list(ctx.args)
    if not command:
        _fail("run failed: missing command after `--`.", json_output=json_output)
        raise typer.Exit(code=2)

    overrides: dict[str, Any] = {"raise_on_verification_failure": False}
    if backspin_dir is not None:
        overrides["backspin_dir"] = backspin_dir

    try:
        env_map = _parse_env_assignments(env or [])
        with use_configuration(**overrides) as config:
            result = run_command(command, name=name, env=env_map, mode=mode, config=config)
    except BackspinError as error:
        _fail(f"run failed: {error}", json_output=json_output, extra={"name": name})
        raise typer.Exit(code=1) from error

    payload = _run_payload(result)
    if json_output:
        _echo_json(payload)
    elif result.recorded:
        _echo(f"recorded: {describe_command(command)} -> {result.record_path}")
    elif result.verified:
        _echo(f"verified: {describe_command(command)} ({result.record_path})")
    else:
        _echo(f"Record: {result.record_path}\n\n{result.error_message}", err=True)

    if payload["exit_code"] != 0:
        raise typer.Exit(code=payload["exit_code"])


@app.command()
def show(
    target: str = typer.Argument(..., help="Record name or path to a .yml record file."),
    backspin_dir: Path | None = typer.Option(
        None,
        "--dir",
        help="Record directory used to resolve record names.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable record contents.",
    ),
) -> None:
    """Print a record's metadata and snapshot."""
    try:
        record_path = _resolve_record_target(target, backspin_dir)
        record = Record.load_from_file(record_path)
    except BackspinError as error:
        _fail(f"show failed: {error}", json_output=json_output)
        raise typer.Exit(code=1) from error

    payload = {"status": "ok", "exit_code": 0, **record.to_dict()}
    if json_output:
        _echo_json(payload)
        return

    snapshot = payload["snapshot"] or {}
    args = snapshot.get("args")
    lines = [
        f"record: {record.path}",
        f"format_version: {record.format_version}",
        f"first_recorded_at: {record.first_recorded_at}",
        f"recorded_at: {record.recorded_at}",
        f"record_count: {record.record_count}",
        f"command_type: {snapshot.get('command_type')}",
        f"args: {describe_command(args) if args is not None else ''}",
    ]
    if snapshot.get("env") is not None:
        lines.append(
            "env: " + ", ".join(f"{key}={value}" for key, value in snapshot["env"].items())
        )
    lines.append(f"status: {snapshot.get('status')}")
    lines.append("[stdout]")
    lines.append((snapshot.get("stdout") or "").rstrip("\n"))
    lines.append("[stderr]")
    lines.append((snapshot.get("stderr") or "").rstrip("\n"))
    _echo("\n".join(lines))


@app.command()
def check(
    record_path: Path = typer.Argument(..., help="Path to a .yml record file."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable validation result.",
    ),
) -> None:
    """Validate a record file against the supported format versions."""
    try:
        record = Record.load_from_file(record_path)
    except BackspinError as error:
        _fail(
            f"check failed: {error}",
            json_output=json_output,
            extra={"valid": False, "record_path": str(record_path)},
        )
        raise typer.Exit(code=1) from error
    if record.is_empty():
        _fail(
            f"check failed: record has no snapshot: {record_path}",
            json_output=json_output,
            extra={"valid": False, "record_path": str(record_path)},
        )
        raise typer.Exit(code=1)

    upgrade_needed =record.format_version != CURRENT_FORMAT_VERSION
    payload = {
        "status": "ok",
        "exit_code": 0,
        "valid": True,
        "record_path": str(record_path),
        "format_version": record.format_version,
        "current_format_version": CURRENT_FORMAT_VERSION,
        "upgrade_needed": upgrade_needed,
    }
    if json_output:
        _echo_json(payload)
        return

    message = f"check passed: {record_path} (format {record.format_version})"
    if upgrade_needed:
        message += f"; re-record to upgrade to {CURRENT_FORMAT_VERSION}"
    _echo(message)


def main() -> None:
    app()
