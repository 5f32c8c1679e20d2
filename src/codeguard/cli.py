"""Codeguard CLI - policy checks, secret scans, gated writes and commands."""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from codeguard import __version__
from codeguard.config import GuardConfig, load_config, write_default_config
from codeguard.errors import ConfigError, WorkspaceViolation
from codeguard.pipeline import MutationPipeline
from codeguard.policy.gate import AccessGate
from codeguard.policy.types import ActionDescriptor, GateDecision
from codeguard.sandbox.types import DEFAULT_TIMEOUT_SECONDS, ExecOptions
from codeguard.security.audit import AuditLogger, verify_log
from codeguard.security.scanner import SecretScanner
from codeguard.utils.logging import configure_logging

cli = typer.Typer(
    name="codeguard",
    help="Policy-gated file mutations and command execution for local coding agents.",
    no_args_is_help=True,
)
audit_app = typer.Typer(help="Inspect the append-only audit log.", no_args_is_help=True)
cli.add_typer(audit_app, name="audit")

console = Console()


def _workspace(ctx: typer.Context) -> Path:
    return ctx.obj["workspace"]


def _config(ctx: typer.Context) -> GuardConfig:
    try:
        return load_config(_workspace(ctx))
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def _pipeline(ctx: typer.Context, *, assume_yes: bool) -> MutationPipeline:
    def confirm(action: ActionDescriptor, decision: GateDecision) -> bool:
        if assume_yes:
            return True
        return typer.confirm(f"{action.description or action.name}. Proceed?", default=False)

    return MutationPipeline(_workspace(ctx), _config(ctx), confirm=confirm)


def _echo_output(stream_name: str, text: str) -> None:
    (sys.stderr if stream_name == "stderr" else sys.stdout).write(text)


def _parse_day(day: str | None) -> date | None:
    if day is None:
        return None
    try:
        return date.fromisoformat(day)
    except ValueError as exc:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {day}") from exc


@cli.callback()
def main(
    ctx: typer.Context,
    workspace: Path = typer.Option(
        Path("."),
        "--workspace",
        "-w",
        help="Workspace root (defaults to current working directory).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Codeguard command surface."""
    configure_logging(verbose=verbose)
    ctx.obj = {"workspace": workspace.expanduser().resolve()}


@cli.command()
def version() -> None:
    """Print the codeguard version."""
    typer.echo(__version__)


@cli.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
) -> None:
    """Write the default policy config into .codeguard/config.yml."""
    try:
        path = write_default_config(_workspace(ctx), force=force)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc
    console.print(f"[green]Created {escape(str(path))}[/green]")


@cli.command()
def check(
    ctx: typer.Context,
    risk: str = typer.Option(..., "--risk", help="Risk level: read, write, exec, or network."),
    scope: list[str] = typer.Option([], "--scope", help="Path affected by the action (repeatable)."),
    command: str | None = typer.Option(None, "--command", help="Command string for exec actions."),
    name: str = typer.Option("cli:check", "--name", help="Capability name recorded in logs."),
) -> None:
    """Evaluate one action against the workspace policy without performing it."""
    gate = AccessGate(_config(ctx).policy)
    decision = gate.evaluate(
        ActionDescriptor(name=name, risk_level=risk, scope=tuple(scope)),
        {"command": command} if command is not None else None,
    )
    typer.echo(f"allowed={str(decision.allowed).lower()}")
    typer.echo(f"requires_confirmation={str(decision.requires_confirmation).lower()}")
    if decision.reason:
        typer.echo(f"reason={decision.reason}")
    if not decision.allowed:
        raise typer.Exit(1)


@cli.command()
def scan(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    redact: bool = typer.Option(False, "--redact", help="Print the redacted text instead of a report."),
) -> None:
    """Scan a file for secrets and PII."""
    scanner = SecretScanner()
    if scanner.should_exclude(str(file)):
        typer.echo(f"{file}: excluded from scanning (sensitive path)", err=True)
        raise typer.Exit(1)

    text = file.read_bytes().decode("utf-8", errors="replace")
    if redact:
        result = scanner.redact(text)
        sys.stdout.write(result.redacted_text or "")
        return

    result = scanner.scan(text)
    if not result.has_secrets:
        console.print(f"[green]No secrets detected in {escape(str(file))}[/green]")
        return

    table = Table(title=f"Secrets detected in {escape(str(file))}")
    table.add_column("Line", justify="right")
    table.add_column("Column", justify="right")
    table.add_column("Type")
    table.add_column("Pattern")
    for match in result.matches:
        table.add_row(str(match.line), str(match.column), escape(match.type), escape(match.pattern))
    console.print(table)
    raise typer.Exit(1)


@cli.command()
def diff(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Workspace-relative target path."),
    new_content: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """Preview the patch that would turn PATH into NEW_CONTENT."""
    pipeline = MutationPipeline(_workspace(ctx), _config(ctx))
    try:
        proposed = pipeline.patches.diff_from_disk(path, new_content.read_text(encoding="utf-8"))
    except (WorkspaceViolation, OSError, UnicodeDecodeError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc
    for line in pipeline.patches.preview(proposed):
        console.print(line, markup=False, highlight=False)
    if proposed.has_changes:
        typer.echo("")
        sys.stdout.write(proposed.unified_patch_text)


@cli.command()
def apply(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Workspace-relative target path."),
    new_content: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only; never write."),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the .backup copy."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Write NEW_CONTENT to PATH through the gate, secret scan, and patch engine."""
    pipeline = _pipeline(ctx, assume_yes=yes)
    result = pipeline.write_file(
        path,
        new_content.read_text(encoding="utf-8"),
        backup=not no_backup,
        dry_run=dry_run,
    )
    if not result.success:
        typer.echo(result.error or "apply failed", err=True)
        raise typer.Exit(1)
    label = "Dry run OK" if dry_run else "Applied"
    console.print(f"[green]{label}: {escape(str(result.file_path))}[/green]")
    if result.backup_path:
        typer.echo(f"backup_path={result.backup_path}")


@cli.command(context_settings={"allow_interspersed_args": False})
def run(
    ctx: typer.Context,
    command: list[str] = typer.Argument(None, help="Command to run; use: codeguard run -- <cmd...>"),
    preset: str | None = typer.Option(None, "--preset", help="Run a named command preset instead."),
    timeout: float = typer.Option(DEFAULT_TIMEOUT_SECONDS, "--timeout", help="Timeout in seconds."),
    stream: bool = typer.Option(False, "--stream", help="Stream output while the command runs."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Run a command through the exec allowlist with a scrubbed environment."""
    pipeline = _pipeline(ctx, assume_yes=yes)
    options = ExecOptions(timeout=timeout)

    if preset:
        result = pipeline.run_preset(preset, options)
    elif command:
        result = pipeline.run_command(" ".join(command), options, sink=_echo_output if stream else None)
    else:
        raise typer.BadParameter("provide a command after -- or use --preset")

    if not stream or preset:
        sys.stdout.write(result.stdout)
        sys.stderr.write(result.stderr)
    if not result.success:
        typer.echo(result.error or "command failed", err=True)
        raise typer.Exit(result.exit_code if result.exit_code > 0 else 1)


@audit_app.command("show")
def audit_show(
    ctx: typer.Context,
    day: str | None = typer.Option(None, "--day", help="Day to show (YYYY-MM-DD, default today)."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON lines."),
) -> None:
    """Show audit entries for one day."""
    entries = AuditLogger.for_workspace(_workspace(ctx)).read_entries(_parse_day(day))
    if as_json:
        for entry in entries:
            typer.echo(json.dumps(entry, sort_keys=True))
        return
    if not entries:
        console.print("[dim]No audit entries.[/dim]")
        return

    table = Table(title="Audit log")
    table.add_column("Timestamp")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Details")
    colors = {"success": "green", "failure": "red", "denied": "yellow"}
    for entry in entries:
        status = entry.get("status", "")
        table.add_row(
            escape(str(entry.get("timestamp", ""))),
            escape(str(entry.get("action", ""))),
            f"[{colors.get(status, 'white')}]{escape(str(status))}[/]",
            escape(json.dumps(entry.get("metadata", {}), sort_keys=True)),
        )
    console.print(table)


@audit_app.command("verify")
def audit_verify(
    ctx: typer.Context,
    day: str | None = typer.Option(None, "--day", help="Day to verify (YYYY-MM-DD, default today)."),
) -> None:
    """Validate every line of an audit file against the audit-entry schema."""
    logger = AuditLogger.for_workspace(_workspace(ctx))
    parsed = _parse_day(day)
    path = logger.path_for_day(parsed) if parsed else logger.log_path
    if not path.exists():
        typer.echo(f"No audit log at {path}", err=True)
        raise typer.Exit(1)

    problems = verify_log(path)
    if problems:
        for problem in problems:
            typer.echo(problem, err=True)
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] {escape(str(path))}")


if __name__ == "__main__":
    cli()
