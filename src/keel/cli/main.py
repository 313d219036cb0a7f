"""Main CLI implementation using Typer."""

from pathlib import Path
from typing import Optional, Callable, Any

import typer
from rich.console import Console

from keel.cli.commands import (
    apply_spec,
    reconcile,
    list_jobs,
    show_status,
    validate_config,
    agent_status,
    agent_reload,
)
from keel.cli.client import IPCClient, IPCError


app = typer.Typer(
    name="keelctl",
    help="Keel - node agent converging jobs and networking to an apply spec",
    add_completion=False,
)

console = Console()


def _run_cli_command(handler: Callable[..., Any], socket: Optional[str], **kwargs: Any):
    """Helper to run a CLI command with an IPC client and error handling."""
    try:
        client = IPCClient(socket_path=socket)
        handler(client, **kwargs)
    except IPCError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("status")
def status_command(
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """Show agent and applied spec status."""
    _run_cli_command(show_status, socket=socket)


@app.command("apply")
def apply_command(
    spec_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Apply spec file (JSON or YAML)"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Apply even if already converged"
    ),
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """Converge the node to an apply spec."""
    _run_cli_command(apply_spec, socket=socket, spec_file=spec_file, force=force)


@app.command("reconcile")
def reconcile_command(
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """Reconcile against the configured desired spec."""
    _run_cli_command(reconcile, socket=socket)


# Job subcommands
jobs_app = typer.Typer(help="Job commands")
app.add_typer(jobs_app, name="jobs")


@jobs_app.command("list")
def jobs_list_command(
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """List installed jobs."""
    _run_cli_command(list_jobs, socket=socket)


# Config subcommands
config_app = typer.Typer(help="Configuration commands")
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate_command(
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """Validate configuration files."""
    _run_cli_command(validate_config, socket=socket)


# Agent subcommands
agent_app = typer.Typer(help="Agent management commands")
app.add_typer(agent_app, name="agent")


@agent_app.command("status")
def agent_status_command(
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """Show agent status."""
    _run_cli_command(agent_status, socket=socket)


@agent_app.command("reload")
def agent_reload_command(
    socket: Optional[str] = typer.Option(
        None, "--socket", "-s", help="Agent socket path"
    ),
):
    """Reload agent configuration."""
    _run_cli_command(agent_reload, socket=socket)


def main():
    """Main entry point for CLI."""
    app()
