"""Folio CLI application - main entry point."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel
from rich.table import Table
from rich.traceback import install

from folio import __version__
from folio.config import load_config
from folio.events import BaseEvent, EventBus
from folio.storage import EntryStore, get_schema
from folio.workspace import WorkspaceLifecycleBinder

from .config import config_app
from .helpers import build_store, console, fail, parse_fields, resolve_workspace, run
from .workspace import workspace_app

install(show_locals=False, width=None, word_wrap=True)

app = typer.Typer(
    name="folio",
    help="Workspace-backed content store with live filesystem sync",
    no_args_is_help=True,
)

WorkspaceOption = typer.Option(None, "--workspace", "-w", help="Workspace directory")
StoreOption = typer.Option("writings", "--store", "-s", help="Store: writings, personality or output")


def _version_callback(value: bool):
    if value:
        console.print(f"folio {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version"),
):
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif "FOLIO_LOG_LEVEL" not in os.environ:
        logging.getLogger().setLevel(load_config().log_level.upper())


def _content_preview(content, width: int = 60) -> str:
    if isinstance(content, list):
        content = "\n".join(block.text for block in content)
    text = " ".join(content.split())
    return text if len(text) <= width else text[: width - 1] + "…"


@app.command("list")
def list_entries(
    namespace: Optional[str] = typer.Argument(None, help="Namespace (all namespaces if omitted)"),
    store_name: str = StoreOption,
    workspace: Optional[Path] = WorkspaceOption,
    as_json: bool = typer.Option(False, "--json", help="Print entries as JSON"),
):
    """List entries, newest first."""
    store = build_store(store_name, workspace)
    entries = run(store.load_all(namespace))

    if as_json:
        console.print_json(json.dumps([entry.to_dict() for entry in entries]))
        return

    if not entries:
        console.print("[yellow]No entries found.[/yellow]")
    else:
        table = Table(title=f"{store.name} entries")
        table.add_column("ID", style="cyan")
        table.add_column("Namespace", style="magenta")
        table.add_column("Title")
        table.add_column("Preview", style="dim")
        for entry in entries:
            entry_id = f"{entry.id} (legacy)" if entry.legacy else entry.id
            table.add_row(entry_id, entry.namespace, entry.title or "", _content_preview(entry.content))
        console.print(table)

    for error in store.last_load_errors:
        console.print(f"[yellow]Skipped[/yellow] {error.path}: {error.message}")


@app.command("show")
def show_entry(
    namespace: str = typer.Argument(..., help="Namespace"),
    entry_id: str = typer.Argument(..., help="Entry id (folder name)"),
    store_name: str = StoreOption,
    workspace: Optional[Path] = WorkspaceOption,
):
    """Show one entry with its metadata and content."""
    store = build_store(store_name, workspace)
    entry = run(store.load_one(namespace, entry_id))
    if entry is None:
        raise fail(f'Entry "{entry_id}" not found in "{namespace}".')

    console.print(Panel(json.dumps(entry.metadata, indent=2, ensure_ascii=False), title=f"{entry.namespace}/{entry.id}"))
    if isinstance(entry.content, list):
        for block in entry.content:
            console.print(f"[bold]── block {block.id}[/bold]")
            console.print(block.text, markup=False)
    else:
        console.print(entry.content, markup=False)


@app.command("create")
def create_entry(
    namespace: str = typer.Argument(..., help="Namespace"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Entry title"),
    field: Optional[List[str]] = typer.Option(None, "--field", "-f", help="Metadata field as key=value (repeatable)"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="Entry content"),
    content_file: Optional[Path] = typer.Option(None, "--content-file", help="Read content from a file"),
    store_name: str = StoreOption,
    workspace: Optional[Path] = WorkspaceOption,
):
    """Create a new entry."""
    if content is not None and content_file is not None:
        raise fail("Use either --content or --content-file, not both.")

    data = parse_fields(field)
    if title is not None:
        data["title"] = title
    if content_file is not None:
        try:
            data["content"] = content_file.read_text(encoding="utf-8")
        except OSError as e:
            raise fail(f"Cannot read {content_file}: {e.strerror or e}")
    elif content is not None:
        data["content"] = content

    store = build_store(store_name, workspace)
    result = run(store.create(namespace, data))
    console.print(f"[green]✓[/green] Created {namespace}/{result.id}")
    console.print(f"  Path: {result.path}")


@app.command("delete")
def delete_entry(
    namespace: str = typer.Argument(..., help="Namespace"),
    entry_id: str = typer.Argument(..., help="Entry id (folder name)"),
    store_name: str = StoreOption,
    workspace: Optional[Path] = WorkspaceOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete an entry and its files."""
    if not yes and not typer.confirm(f"Delete {namespace}/{entry_id}?"):
        raise typer.Exit(1)

    store = build_store(store_name, workspace)
    if run(store.delete(namespace, entry_id)):
        console.print(f"[green]✓[/green] Deleted {namespace}/{entry_id}")
    else:
        console.print(f"[yellow]Nothing to delete:[/yellow] {namespace}/{entry_id}")


@app.command("watch")
def watch(
    workspace: Optional[Path] = WorkspaceOption,
    store_names: Optional[List[str]] = typer.Option(None, "--store", "-s", help="Stores to watch (default: from config)"),
):
    """Print live change events until interrupted."""
    config = load_config()
    root = resolve_workspace(workspace, config)
    bus = EventBus()

    try:
        schemas = [get_schema(name) for name in (store_names or config.stores)]
    except ValueError as e:
        raise fail(str(e))
    stores = [EntryStore(schema, bus, config=config) for schema in schemas]

    def print_event(event: BaseEvent) -> None:
        name = getattr(event, "name", event.event_type.name.lower())
        payload = event.to_payload() if hasattr(event, "to_payload") else {}
        console.print(f"[cyan]{name}[/cyan] {json.dumps(payload, ensure_ascii=False)}")

    bus.subscribe(print_event)

    async def _watch() -> None:
        binder = WorkspaceLifecycleBinder(bus, stores)
        await binder.apply(root)
        console.print(f"[green]Watching[/green] {root} ({', '.join(store.name for store in stores)}). Ctrl-C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            await binder.close()

    try:
        run(_watch())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")


app.add_typer(config_app, name="config")
app.add_typer(workspace_app, name="workspace")
