"""Shared helpers for CLI commands."""

import asyncio
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional, TypeVar

import typer
import yaml
from rich.console import Console

from folio.config import FolioConfig, load_config
from folio.events import EventBus
from folio.exceptions import FolioError, NoWorkspaceError
from folio.storage import EntryStore, get_schema
from folio.workspace import WorkspaceService
from folio.workspace.service import STATE_FILENAME

T = TypeVar("T")

console = Console()
error_console = Console(stderr=True)


def fail(message: str) -> typer.Exit:
    error_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning store errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except FolioError as e:
        raise fail(str(e))


def get_workspace_service(config: FolioConfig, bus: Optional[EventBus] = None) -> WorkspaceService:
    return WorkspaceService(bus or EventBus(), state_path=config.state_dir / STATE_FILENAME)


def resolve_workspace(workspace: Optional[Path], config: FolioConfig) -> Path:
    """--workspace, then the config file, then the last selected workspace."""
    if workspace is not None:
        path = workspace.expanduser().resolve()
    elif config.workspace is not None:
        path = config.workspace.expanduser().resolve()
    else:
        current = get_workspace_service(config).initialize()
        if current is None:
            raise fail(str(NoWorkspaceError("No workspace selected. Pass --workspace or run: folio workspace set <dir>")))
        path = current

    if not path.is_dir():
        raise fail(f"Workspace path is not a directory: {path}")
    return path


def build_store(store_name: str, workspace: Optional[Path], bus: Optional[EventBus] = None) -> EntryStore:
    config = load_config()
    try:
        schema = get_schema(store_name)
    except FolioError as e:
        raise fail(str(e))
    return EntryStore(schema, bus or EventBus(), workspace=resolve_workspace(workspace, config), config=config)


def parse_fields(values: Optional[List[str]]) -> Dict[str, Any]:
    """Parse ``key=value`` options; values are read as YAML scalars or lists."""
    fields: Dict[str, Any] = {}
    for item in values or []:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise fail(f"Invalid field '{item}'. Use key=value.")
        try:
            fields[key.strip()] = yaml.safe_load(raw) if raw.strip() else ""
        except yaml.YAMLError:
            fields[key.strip()] = raw
    return fields
