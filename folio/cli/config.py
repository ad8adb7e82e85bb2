"""Configuration management CLI commands."""

import typer
from rich.table import Table

from .helpers import console

config_app = typer.Typer(help="Manage Folio configuration")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    from folio.config import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print(f"[cyan]Configuration file:[/cyan] [dim]{config_path}[/dim]")
    if not config_path.exists():
        console.print("[yellow]No config file, using defaults[/yellow]")
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Workspace", str(config.workspace) if config.workspace else "[dim](not set)[/dim]")
    table.add_row("Stores", ", ".join(config.stores))
    table.add_row("Debounce", f"{config.debounce_ms} ms")
    table.add_row("Write guard", f"{config.write_guard_ms} ms")
    table.add_row("Save delay", f"{config.save_delay_ms} ms")
    table.add_row("Polling", f"yes ({config.poll_delay_ms} ms)" if config.force_polling else "no")
    table.add_row("Log level", config.log_level)
    table.add_row("State dir", str(config.state_dir))
    console.print(table)


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
):
    """Write a config file with the default settings."""
    from folio.config import FolioConfig, get_config_path, save_config

    existing = get_config_path()
    if existing.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {existing}")
        console.print("Use --force to overwrite it.")
        raise typer.Exit(1)

    path = save_config(FolioConfig(), existing if existing.exists() else None)
    console.print(f"[green]✓[/green] Wrote default config to {path}")
