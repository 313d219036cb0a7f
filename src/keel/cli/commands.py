"""Command implementations for CLI."""

from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime

from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from ruamel.yaml import YAML, YAMLError

from keel.cli.client import IPCClient, IPCError


console = Console()


def _run_action(
    client: IPCClient,
    description: str,
    command: str,
    args: Dict[str, Any],
    success_msg: Optional[str] = None,
    quiet: bool = False
) -> Dict[str, Any]:
    """Helper to run an IPC action with a progress spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=quiet,
    ) as progress:
        task = progress.add_task(description, total=None)

        response = client.request(command, args)

        progress.update(task, completed=True)

    if success_msg and not quiet:
        console.print(success_msg)

    return response


def load_spec_document(spec_file: Path) -> Dict[str, Any]:
    """Read an apply spec from a JSON or YAML file."""
    try:
        document = YAML(typ="safe").load(spec_file.read_text())
    except OSError as e:
        raise IPCError(f"Reading {spec_file}: {e}")
    except YAMLError as e:
        raise IPCError(f"Parsing {spec_file}: {e}")

    if not isinstance(document, dict):
        raise IPCError(f"Apply spec in {spec_file} must be a mapping")
    return document


def apply_spec(client: IPCClient, spec_file: Path, force: bool = False, quiet: bool = False):
    """Send an apply spec to the agent."""
    document = load_spec_document(spec_file)
    deployment = document.get("deployment", "")

    response = _run_action(
        client,
        description=f"Applying spec for deployment {deployment}...",
        command="apply",
        args={"spec": document, "force": force},
        quiet=quiet,
    )

    if quiet:
        return
    if response.get("applied"):
        console.print(f"[green]✓[/green] Deployment {deployment} applied")
    else:
        console.print(f"[green]✓[/green] Deployment {deployment} already converged")


def reconcile(client: IPCClient):
    """Trigger a reconciliation pass."""
    _run_action(
        client,
        description="Reconciling...",
        command="reconcile",
        args={},
        success_msg="[green]✓[/green] Reconciliation completed",
    )


def list_jobs(client: IPCClient):
    """List installed job bundles."""
    response = client.request("jobs", {})
    jobs = response.get("jobs", [])

    if not jobs:
        console.print("No jobs installed")
        return

    table = Table(title="Jobs")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="magenta")
    table.add_column("Enabled")
    table.add_column("Path", style="dim", max_width=60)

    for job in jobs:
        enabled = "[green]●[/green]" if job.get("enabled") else "[red]○[/red]"
        table.add_row(job["name"], job["version"], enabled, job.get("path", ""))

    console.print(table)


def show_status(client: IPCClient):
    """Show agent and node status."""
    response = client.request("status", {})
    agent_info = response.get("agent", {})
    spec = response.get("spec", {})

    console.print("[bold]Agent Status[/bold]")
    console.print(f"  Running: {'Yes' if agent_info.get('running') else 'No'}")

    last_recon = agent_info.get("last_reconciliation")
    if last_recon:
        dt = datetime.fromisoformat(last_recon)
        console.print(f"  Last Reconciliation: {dt.strftime('%Y-%m-%d %H:%M:%S')}")
    else:
        console.print("  Last Reconciliation: Never")

    broadcast = agent_info.get("address_broadcast")
    if broadcast:
        console.print(f"  Address Broadcast: {broadcast}")

    console.print()
    console.print("[bold]Applied Spec[/bold]")
    console.print(f"  Deployment: {spec.get('deployment') or '-'}")
    console.print(f"  Index: {spec.get('index', 0)}")
    console.print(f"  Networks: {', '.join(spec.get('networks', [])) or '-'}")
    console.print(f"  Jobs: {', '.join(spec.get('jobs', [])) or '-'}")


def validate_config(client: IPCClient):
    """Validate configuration."""
    response = _run_action(
        client,
        description="Validating configuration...",
        command="validate",
        args={},
    )

    if response.get("valid"):
        console.print("[green]✓[/green] Configuration is valid")
    else:
        console.print("[red]✗[/red] Configuration is invalid")
        console.print(f"  Error: {response.get('error')}")


def agent_status(client: IPCClient):
    """Show agent status."""
    show_status(client)


def agent_reload(client: IPCClient):
    """Reload agent configuration."""
    _run_action(
        client,
        description="Reloading configuration...",
        command="reload",
        args={},
        success_msg="[green]✓[/green] Configuration reloaded",
    )
