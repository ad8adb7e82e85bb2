"""Workspace selection CLI commands."""

from datetime import datetime
from pathlib import Path

import typer
from rich.table import Table

from folio.config import load_config
from folio.exceptions import FolioError

from .helpers import console, fail, get_workspace_service

workspace_app = typer.Typer(help="Select the active workspace")


@workspace_app.command("show")
def workspace_show():
    """Show the selected workspace."""
    service = get_workspace_service(load_config())
    current = service.initialize()
    if current is None:
        console.print("[yellow]No workspace selected.[/yellow]")
        console.print("\nSelect one with: folio workspace set <dir>")
        return
    console.print(f"[bold]Workspace:[/bold] {current}")


@workspace_app.command("set")
def workspace_set(path: Path = typer.Argument(..., help="Workspace directory")):
    """Select a workspace directory."""
    service = get_workspace_service(load_config())
    try:
        resolved = service.set_current(path)
    except FolioError as e:
        raise fail(str(e))
    console.print(f"[green]✓[/green] Workspace set to {resolved}")


@workspace_app.command("clear")
def workspace_clear():
    """Forget the selected workspace."""
    service = get_workspace_service(load_config())
    service.initialize()
    service.clear()
    console.print("[green]✓[/green] Workspace cleared")


@workspace_app.command("recent")
def workspace_recent():
    """List recently selected workspaces."""
    service = get_workspace_service(load_config())
    recent = service.get_recent()

    if not recent:
        console.print("[yellow]No recent workspaces.[/yellow]")
        return

    table = Table(title="Recent Workspaces")
    table.add_column("Path", style="cyan")
    table.add_column("Last opened", style="dim")
    for item in recent:
        opened = datetime.fromtimestamp(item.last_opened / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(item.path, opened)
    console.print(table)
