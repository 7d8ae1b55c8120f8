from __future__ import annotations

import json
from dataclasses import replace
from datetime import date
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from postpro_engine.core.ai.assistant import process_command
from postpro_engine.core.ai.openai_client import OpenAICommandClient
from postpro_engine.core.catalog.presets import PresetConfigError, load_and_merge, preset_types
from postpro_engine.core.config import EngineConfig, configure_logging, load_config
from postpro_engine.core.dates.resolve_date import format_date
from postpro_engine.core.errors import (
    ConfigurationError,
    ScheduleError,
    ScheduleLoadError,
)
from postpro_engine.core.evaluator.cascade import simulate_cascade
from postpro_engine.core.interpret.run_command import resolve_target, resolve_target_date
from postpro_engine.core.io.dump_schedule import dump_schedule_yaml, state_to_dict
from postpro_engine.core.io.load_schedule import load_schedule, state_from_dict
from postpro_engine.core.model import Result
from postpro_engine.core.state.provision import provision_project
from postpro_engine.core.state.schedule_state import ScheduleState
from postpro_engine.core.transaction.move import move_milestone, what_if

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine decisions to stderr"),
) -> None:
    """PostPro milestone scheduling CLI."""
    try:
        level = load_config().log_level
    except ValueError:
        # Bad POSTPRO_TODAY is reported by the command that needs it.
        level = "WARNING"
    configure_logging("DEBUG" if verbose else level)


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a schedule file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a schedule snapshot: catalog acyclicity and references."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, *, exit_code: int, errors: list[ScheduleError], summary: dict | None) -> None:
        payload = {
            "tool": "postpro",
            "command": "validate",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_error_item(e) for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        data = load_schedule(path)
        state = state_from_dict(data)
    except ScheduleLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)
    except ConfigurationError as e:
        if format == "json":
            _emit_json(False, exit_code=2, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=2)

    if format == "text":
        typer.echo(_summarize(state))
        return

    summary = {
        "milestone_type_count": len(state.catalog),
        "episode_count": len(state.episodes),
        "milestone_count": len(state.milestones),
        "roots": state.catalog.roots,
    }
    _emit_json(True, exit_code=0, errors=[], summary=summary)


@app.command("ask")
def ask(
    path: str = typer.Argument(..., help="Path to a schedule file"),
    text: str = typer.Argument(..., help='Instruction, e.g. "move 304 lock to Friday"'),
    today: Optional[str] = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the updated schedule here"),
    ai: Optional[bool] = typer.Option(
        None, "--ai/--no-ai", help="Use the AI collaborator (default: when OPENAI_API_KEY is set)"
    ),
    model: Optional[str] = typer.Option(None, "--model"),
    base_url: Optional[str] = typer.Option(None, "--base-url"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Run a free-text scheduling instruction."""
    _check_format(format, "E_ASK_UNKNOWN_FORMAT")
    state = _load_state(path)
    ref = _reference_date(today)
    config = _config()

    use_ai = config.ai_enabled if ai is None else ai
    if use_ai and not config.ai_enabled:
        _print_errors(
            [
                ScheduleError(
                    code="E_ASK_NO_API_KEY",
                    message="OPENAI_API_KEY is not set",
                    path="OPENAI_API_KEY",
                )
            ]
        )
        raise typer.Exit(code=2)

    llm = OpenAICommandClient(base_url=base_url) if use_ai else None
    result = process_command(
        text,
        state,
        llm=llm,
        model=model or config.openai_model,
        today=ref,
    )
    _write_if_moved(out, state, result)
    _emit_result("ask", result, format)


@app.command("move")
def move(
    path: str = typer.Argument(..., help="Path to a schedule file"),
    episode: str = typer.Argument(..., help="Episode number (substring match)"),
    code: str = typer.Argument(..., help="Milestone type code"),
    when: str = typer.Argument(..., help='Target date, e.g. "Friday" or 12/20'),
    today: Optional[str] = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the updated schedule here"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Move one milestone, refusing moves that break prerequisites."""
    _check_format(format, "E_MOVE_UNKNOWN_FORMAT")
    state = _load_state(path)
    ref = _reference_date(today)

    try:
        milestone = resolve_target(state, episode, code)
        new_date = resolve_target_date(when, ref)
    except ScheduleError as e:
        _emit_result("move", Result(success=False, message=e.message), format)
        return

    result = move_milestone(state, milestone.id, new_date)
    _write_if_moved(out, state, result)
    _emit_result("move", result, format)


@app.command("what-if")
def what_if_cmd(
    path: str = typer.Argument(..., help="Path to a schedule file"),
    episode: str = typer.Argument(..., help="Episode number (substring match)"),
    code: str = typer.Argument(..., help="Milestone type code"),
    when: str = typer.Argument(..., help='Target date, e.g. "Friday" or 12/20'),
    today: Optional[str] = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD)"),
    cascade: bool = typer.Option(False, "--cascade", help="Follow forced shifts through the whole graph"),
    advisories: bool = typer.Option(
        False, "--advisories", help="Also report calendar holds and hard-deadline slips"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Report what a move would cause without applying it."""
    _check_format(format, "E_WHAT_IF_UNKNOWN_FORMAT")
    state = _load_state(path)
    ref = _reference_date(today)

    try:
        milestone = resolve_target(state, episode, code)
        new_date = resolve_target_date(when, ref)
    except ScheduleError as e:
        _emit_result("what-if", Result(success=False, message=e.message), format)
        return

    result = what_if(state, milestone.id, new_date, include_advisories=advisories)
    if not cascade:
        _emit_result("what-if", result, format)
        return

    report = simulate_cascade(state, milestone.id, new_date)
    items = [
        f"{s.label}: {format_date(s.from_date)} -> {format_date(s.to_date)} (depth {s.depth})"
        for s in report.shifts
    ]
    if report.truncated:
        items.append("cascade truncated at depth limit")
    _emit_result("what-if", replace(result, items=items), format)


@app.command("presets")
def presets(
    preset_file: Optional[str] = typer.Option(
        None,
        "--preset-file",
        help="Optional YAML file to add/override catalog presets",
    ),
) -> None:
    """List milestone catalog presets."""
    presets_map = _load_presets(preset_file)

    typer.echo("Presets:")
    for name in sorted(presets_map.keys()):
        chain = ", ".join(e["code"] for e in presets_map[name])
        typer.echo(f"- {name}: {chain}")


@app.command("init")
def init(
    out: str = typer.Option(..., "--out", help="Path to write the new schedule YAML"),
    preset: str = typer.Option("streaming", "--preset", help="Catalog preset name"),
    episodes: int = typer.Option(10, "--episodes", help="Number of episodes"),
    prefix: str = typer.Option("", "--prefix", help="Episode number prefix"),
    start: int = typer.Option(1, "--start", help="First episode number"),
    base_date: Optional[str] = typer.Option(
        None, "--base-date", help="Stagger milestone dates from this date (YYYY-MM-DD)"
    ),
    project_id: str = typer.Option("project", "--project-id"),
    name: Optional[str] = typer.Option(None, "--name", help="Project display name"),
    preset_file: Optional[str] = typer.Option(None, "--preset-file"),
) -> None:
    """Provision a project schedule from a catalog preset."""
    presets_map = _load_presets(preset_file)
    if preset not in presets_map:
        _print_errors(
            [
                ScheduleError(
                    code="E_INIT_UNKNOWN_PRESET",
                    message=f"unknown preset: {preset} (choose one of: {', '.join(sorted(presets_map.keys()))})",
                    path="preset",
                )
            ]
        )
        raise typer.Exit(code=2)

    if episodes < 1:
        _print_errors([ScheduleError(code="E_INIT_BAD_EPISODES", message="--episodes must be >= 1", path="episodes")])
        raise typer.Exit(code=2)

    base = _parse_iso(base_date, "base_date") if base_date else None

    try:
        state = provision_project(
            project_id=project_id,
            project_name=name,
            types=preset_types(project_id, presets_map[preset]),
            episode_count=episodes,
            episode_prefix=prefix,
            start_number=start,
            base_date=base,
        )
    except ConfigurationError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    dump_schedule_yaml(state_to_dict(state), out)
    typer.echo(f"OK: wrote {out} ({len(state.episodes)} episodes, {len(state.milestones)} milestones)")


def _load_state(path: str) -> ScheduleState:
    try:
        return state_from_dict(load_schedule(path))
    except ScheduleLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    except ConfigurationError as e:
        _print_errors([e])
        raise typer.Exit(code=2)


def _load_presets(preset_file: Optional[str]) -> dict[str, list[dict[str, Any]]]:
    try:
        return load_and_merge(preset_file)
    except FileNotFoundError:
        _print_errors(
            [
                ScheduleLoadError(
                    code="E_PRESET_FILE_NOT_FOUND",
                    message=f"preset file not found: {preset_file}",
                    path="preset_file",
                )
            ]
        )
        raise typer.Exit(code=1)
    except PresetConfigError as e:
        _print_errors(
            [
                ConfigurationError(
                    code="E_PRESET_FILE_INVALID",
                    message=str(e),
                    path="preset_file",
                )
            ]
        )
        raise typer.Exit(code=2)


def _config() -> EngineConfig:
    try:
        return load_config()
    except ValueError:
        _print_errors(
            [ScheduleError(code="E_INVALID_TODAY", message="POSTPRO_TODAY must be YYYY-MM-DD", path="POSTPRO_TODAY")]
        )
        raise typer.Exit(code=2)


def _reference_date(today: Optional[str]) -> date:
    if today:
        return _parse_iso(today, "today")
    return _config().today or date.today()


def _parse_iso(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        _print_errors(
            [ScheduleError(code="E_INVALID_DATE", message=f"{field} must be YYYY-MM-DD, got: {value}", path=field)]
        )
        raise typer.Exit(code=2)


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        _print_errors(
            [
                ScheduleError(
                    code=code,
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _write_if_moved(out: Optional[str], state: ScheduleState, result: Result) -> None:
    if out and result.success and result.milestone is not None:
        dump_schedule_yaml(state_to_dict(state), out)


def _emit_result(command: str, result: Result, format: str) -> None:
    if format == "json":
        payload = {"tool": "postpro", "command": command, "ok": result.success, "result": result.to_dict()}
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        typer.echo(result.message, err=not result.success)
        if result.conflicts:
            table = Table(title="Conflicts")
            table.add_column("Severity")
            table.add_column("Kind")
            table.add_column("Message")
            table.add_column("Suggestion")
            for c in result.conflicts:
                table.add_row(c.severity, c.kind, c.message, c.suggested_resolution or "")
            console.print(table)
        for item in result.items:
            typer.echo(f"- {item}")
        if result.clarification_needed:
            typer.echo(result.clarification_needed, err=True)

    if not result.success:
        raise typer.Exit(code=2)


def _summarize(state: ScheduleState) -> str:
    return (
        f"OK: {len(state.catalog)} milestone types, {len(state.episodes)} episodes, "
        f"{len(state.milestones)} milestones\nRoots: " + ", ".join(state.catalog.roots)
    )


def _error_item(e: ScheduleError) -> dict:
    source = "load" if isinstance(e, ScheduleLoadError) else "catalog"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _print_errors(errors: list[ScheduleError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="postpro")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
