"""Workspace-backed entry storage with filesystem-watch sync."""

from .backends import RawEvent, WatchBackend, WatchfilesBackend
from .guard import WriteGuard
from .models import Content, ContentBlock, Entry, EntryRef, LoadError, SectionConfig, WriteResult
from .paths import PathScheme, encode, is_date_folder, is_legacy_id
from .schemas import OUTPUT, PERSONALITY, SCHEMAS, WRITINGS, StoreSchema, get_schema, list_schemas
from .section_config import SectionConfigStore, read_section_config
from .store import EntryStore
from .watcher import ChangeWatcher, WatcherState

__all__ = [
    # Models
    "Content",
    "ContentBlock",
    "Entry",
    "EntryRef",
    "LoadError",
    "SectionConfig",
    "WriteResult",
    # Schemas
    "StoreSchema",
    "WRITINGS",
    "PERSONALITY",
    "OUTPUT",
    "SCHEMAS",
    "get_schema",
    "list_schemas",
    # Paths
    "PathScheme",
    "encode",
    "is_date_folder",
    "is_legacy_id",
    # Sync
    "WriteGuard",
    "ChangeWatcher",
    "WatcherState",
    "RawEvent",
    "WatchBackend",
    "WatchfilesBackend",
    # Stores
    "EntryStore",
    "SectionConfigStore",
    "read_section_config",
]
