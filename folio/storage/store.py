"""Generic entry store bound to a workspace directory."""

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from folio.config import FolioConfig
from folio.events import EventSink
from folio.exceptions import (
    CorruptMetadataError,
    FolioError,
    InvalidArgumentError,
    IOFailureError,
    NoWorkspaceError,
    NotFoundError,
)

from .backends import WatchBackend, WatchfilesBackend
from .codec import (
    entry_files,
    find_legacy,
    iso_from_ms,
    list_block_files,
    read_entry,
    read_legacy,
    read_metadata,
    timestamp_ms,
    write_entry,
)
from .guard import WriteGuard
from .models import Entry, LoadError, WriteResult
from .paths import PathLike, PathScheme, encode, is_date_folder, normalize, split_legacy_name, with_suffix
from .schemas import StoreSchema
from .section_config import SectionConfigStore, read_section_config
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def _reserve_folder(folder: Path) -> None:
    folder.parent.mkdir(parents=True, exist_ok=True)
    folder.mkdir()


def _list_children(target: Path) -> List[Path]:
    if target.is_dir():
        return [target, *target.iterdir()]
    return [target]


def _remove(target: Path) -> None:
    if target.is_dir():
        shutil.rmtree(target)
    else:
        target.unlink()


@dataclass
class _PendingSave:
    root: Path
    namespace: str
    entry_id: str
    partial: Dict[str, Any]
    handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)


class EntryStore:
    """Create, save, load and delete entries of one store variant.

    The store is bound to a workspace; every operation resolves paths
    against the current binding and raises NoWorkspaceError when unbound.
    All disk I/O runs in worker threads. Paths are marked in the write guard
    on the event loop before the worker starts, so the watcher never reports
    the store's own writes.

    Example:
        store = EntryStore(WRITINGS, bus, workspace=Path("~/notes").expanduser())
        result = await store.create("writings", {"title": "Hello"})
        entry = await store.load_one("writings", result.id)
    """

    def __init__(
        self,
        schema: StoreSchema,
        sink: EventSink,
        *,
        workspace: Optional[PathLike] = None,
        backend: Optional[WatchBackend] = None,
        config: Optional[FolioConfig] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.schema = schema
        self.sink = sink
        self.config = config or FolioConfig()
        self._clock = clock
        self._workspace: Optional[Path] = None

        self.guard = WriteGuard(self.config.write_guard_seconds)
        self.section_configs: Optional[SectionConfigStore] = SectionConfigStore(self) if schema.section_config else None
        self.watcher = ChangeWatcher(
            schema,
            sink,
            backend=backend or WatchfilesBackend(self.config.force_polling, self.config.poll_delay_ms),
            debounce=self.config.debounce_seconds,
            guard=self.guard,
            section_config_loader=self.section_configs.read_path if self.section_configs else None,
        )

        self.last_load_errors: List[LoadError] = []
        self._pending: Dict[Tuple[str, str, str], _PendingSave] = {}
        self._inflight: Set[asyncio.Task] = set()

        if workspace is not None:
            self.bind(workspace)

    def __repr__(self) -> str:
        return f"EntryStore(schema={self.schema.name!r}, root={str(self.root) if self.root else None!r})"

    @property
    def name(self) -> str:
        return self.schema.name

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def bind(self, workspace: PathLike) -> None:
        self._workspace = Path(normalize(workspace))
        logger.debug("%s store bound to %s", self.name, self.root)

    def unbind(self) -> None:
        self._workspace = None
        logger.debug("%s store unbound", self.name)

    @property
    def workspace(self) -> Optional[Path]:
        return self._workspace

    @property
    def root(self) -> Optional[Path]:
        if self._workspace is None:
            return None
        return Path(normalize(self.schema.store_root(self._workspace)))

    @property
    def is_bound(self) -> bool:
        return self._workspace is not None

    def require_root(self) -> Path:
        root = self.root
        if root is None:
            raise NoWorkspaceError()
        return root

    def _scheme(self, root: Path, namespace: str) -> PathScheme:
        self.schema.validate_namespace(namespace)
        return PathScheme(root, self.schema)

    # ------------------------------------------------------------------
    # Section config fallback
    # ------------------------------------------------------------------

    def _section_defaults(self, scheme: PathScheme, namespace: str) -> Optional[Dict[str, Any]]:
        if not self.schema.section_config:
            return None
        path = scheme.section_config_path(namespace)
        try:
            config = read_section_config(path)
        except (CorruptMetadataError, OSError) as e:
            logger.warning("Ignoring section config %s: %s", path, e)
            return None
        return config.to_metadata() if config is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, namespace: str, data: Optional[Mapping[str, Any]] = None) -> WriteResult:
        """Create an entry in a new date-named folder.

        Args:
            namespace: Target namespace
            data: Metadata fields, plus an optional ``content`` key

        Returns:
            WriteResult with the allocated id

        Raises:
            NoWorkspaceError: If no workspace is bound
            InvalidArgumentError: If the namespace or a field is invalid
            IOFailureError: If the folder or files cannot be written
        """
        root = self.require_root()
        scheme = self._scheme(root, namespace)

        fields = dict(data or {})
        content = self.schema.normalize_content(fields.pop("content", None))
        self.schema.validate_fields(fields, creating=True)

        now = self._clock()
        section_defaults = await asyncio.to_thread(self._section_defaults, scheme, namespace)
        metadata = self.schema.build_metadata(namespace, fields, section_defaults, iso_from_ms(now))
        if self.schema.content_mode == "blocks":
            metadata["blocks"] = [block.id for block in content]

        folder = await self._allocate(scheme, namespace, encode(now))
        self.guard.mark_many(entry_files(folder, self.schema, content))
        try:
            await asyncio.to_thread(write_entry, folder, self.schema, metadata, content)
        except OSError as e:
            raise IOFailureError("write entry", folder, e) from e

        logger.info("Created %s entry %s/%s", self.name, namespace, folder.name)
        return WriteResult(id=folder.name, path=folder, saved_at=now)

    async def _allocate(self, scheme: PathScheme, namespace: str, base: str) -> Path:
        """Reserve a folder by creating it; same-second collisions get a suffix."""
        self.guard.mark_written(scheme.namespace_path(namespace))
        attempt = 1
        while True:
            folder = scheme.entry_path(namespace, with_suffix(base, attempt))
            self.guard.mark_written(folder)
            try:
                await asyncio.to_thread(_reserve_folder, folder)
            except FileExistsError:
                attempt += 1
                continue
            except OSError as e:
                raise IOFailureError("create folder", folder, e) from e
            return folder

    def _next_updated_at(self, previous: Any) -> int:
        now = self._clock()
        previous_ms = timestamp_ms(previous)
        if previous_ms is not None and now <= previous_ms:
            now = previous_ms + 1
        return now

    async def save(self, namespace: str, entry_id: str, partial: Optional[Mapping[str, Any]] = None) -> WriteResult:
        """Merge ``partial`` into an existing entry.

        Only supplied fields change. Metadata is always rewritten with a new
        ``updatedAt``; content files are rewritten only when ``content`` is
        supplied.

        Raises:
            NotFoundError: If the entry folder or its sidecar is missing
        """
        root = self.require_root()
        return await self._save_at(root, namespace, entry_id, partial or {})

    async def _save_at(self, root: Path, namespace: str, entry_id: str, partial: Mapping[str, Any]) -> WriteResult:
        scheme = self._scheme(root, namespace)
        scheme.validate_id(entry_id)
        if not is_date_folder(entry_id):
            raise InvalidArgumentError(
                f'Entry "{entry_id}" is a legacy file and is read-only. Create a new entry instead.', field="id"
            )

        fields = dict(partial)
        content = self.schema.normalize_content(fields.pop("content")) if "content" in fields else None
        self.schema.validate_fields(fields, creating=False)

        folder = scheme.entry_path(namespace, entry_id)
        metadata_path = folder / self.schema.metadata_filename
        try:
            existing = await asyncio.to_thread(read_metadata, metadata_path)
        except FileNotFoundError:
            raise NotFoundError(namespace, entry_id) from None
        except OSError as e:
            raise IOFailureError("read", metadata_path, e) from e

        metadata = {**existing, **self.schema.clean_fields(fields)}
        if self.schema.namespace_field:
            metadata[self.schema.namespace_field] = namespace
        updated = self._next_updated_at(existing.get("updatedAt"))
        metadata["updatedAt"] = iso_from_ms(updated)

        stale: List[str] = []
        if content is not None and self.schema.content_mode == "blocks":
            metadata["blocks"] = [block.id for block in content]
            present = await asyncio.to_thread(list_block_files, folder)
            stale = [block_id for block_id in present if block_id not in metadata["blocks"]]

        marked = entry_files(folder, self.schema, content)
        marked.extend(folder / f"block-{block_id}.md" for block_id in stale)
        self.guard.mark_many(marked)
        try:
            await asyncio.to_thread(write_entry, folder, self.schema, metadata, content, stale)
        except OSError as e:
            raise IOFailureError("write entry", folder, e) from e

        logger.debug("Saved %s entry %s/%s", self.name, namespace, entry_id)
        return WriteResult(id=entry_id, path=folder, saved_at=updated)

    async def delete(self, namespace: str, entry_id: str) -> bool:
        """Remove an entry folder (or legacy file) and report it right away.

        Returns False when there was nothing to delete.
        """
        root = self.require_root()
        scheme = self._scheme(root, namespace)
        scheme.validate_id(entry_id)

        if is_date_folder(entry_id):
            target: Optional[Path] = scheme.entry_path(namespace, entry_id)
        else:
            target = await asyncio.to_thread(find_legacy, scheme.namespace_path(namespace), entry_id)
        if target is None:
            return False

        try:
            children = await asyncio.to_thread(_list_children, target)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise IOFailureError("read", target, e) from e

        self.guard.mark_many(children)
        try:
            await asyncio.to_thread(_remove, target)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise IOFailureError("delete", target, e) from e

        logger.info("Deleted %s entry %s/%s", self.name, namespace, entry_id)
        self.watcher.emit_removed(namespace, entry_id, target)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_one(self, namespace: str, entry_id: str) -> Optional[Entry]:
        """Load one entry, or None if it does not exist (yet).

        Raises:
            CorruptMetadataError: If the sidecar cannot be parsed
            IOFailureError: For other filesystem errors
        """
        root = self.require_root()
        scheme = self._scheme(root, namespace)
        scheme.validate_id(entry_id)
        try:
            return await asyncio.to_thread(self._read_one, scheme, namespace, entry_id)
        except OSError as e:
            raise IOFailureError("read entry", scheme.entry_path(namespace, entry_id), e) from e

    def _read_one(self, scheme: PathScheme, namespace: str, entry_id: str) -> Optional[Entry]:
        if is_date_folder(entry_id):
            try:
                return read_entry(scheme.entry_path(namespace, entry_id), self.schema, namespace)
            except FileNotFoundError:
                return None
        path = find_legacy(scheme.namespace_path(namespace), entry_id)
        return read_legacy(path, self.schema, namespace) if path is not None else None

    async def load_all(self, namespace: Optional[str] = None) -> List[Entry]:
        """Load every readable entry, newest first.

        Entries that fail to parse are skipped; their errors are logged and
        kept in ``last_load_errors``.
        """
        root = self.require_root()
        scheme = PathScheme(root, self.schema)
        if namespace is not None:
            self.schema.validate_namespace(namespace)
            namespaces = [namespace]
        else:
            namespaces = await asyncio.to_thread(scheme.list_namespaces)

        try:
            entries, errors = await asyncio.to_thread(self._scan, scheme, namespaces)
        except OSError as e:
            raise IOFailureError("list", root, e) from e

        self.last_load_errors = errors
        for error in errors:
            logger.warning("Skipping %s entry %s: %s", self.name, error.path, error.message)

        entries.sort(key=lambda entry: entry.saved_at, reverse=True)
        return entries

    def _scan(self, scheme: PathScheme, namespaces: List[str]) -> Tuple[List[Entry], List[LoadError]]:
        entries: List[Entry] = []
        errors: List[LoadError] = []

        for namespace in namespaces:
            directory = scheme.namespace_path(namespace)
            if not directory.is_dir():
                continue

            for child in sorted(directory.iterdir()):
                if child.name.startswith("."):
                    continue
                try:
                    if child.is_dir() and is_date_folder(child.name):
                        entries.append(read_entry(child, self.schema, namespace))
                    elif self.schema.legacy_files and child.is_file() and split_legacy_name(child.name):
                        entries.append(read_legacy(child, self.schema, namespace))
                except FileNotFoundError:
                    # Folder without a sidecar yet
                    continue
                except CorruptMetadataError as e:
                    errors.append(LoadError(path=child, message=str(e), namespace=namespace, details={"file": str(e.path)}))
                except OSError as e:
                    errors.append(
                        LoadError(path=child, message=e.strerror or str(e), namespace=namespace, details={"errno": e.errno})
                    )

        return entries, errors

    # ------------------------------------------------------------------
    # Debounced saves
    # ------------------------------------------------------------------

    def schedule_save(
        self,
        namespace: str,
        entry_id: str,
        partial: Mapping[str, Any],
        delay: Optional[float] = None,
    ) -> None:
        """Save after a quiet period, merging repeated calls for the same entry.

        The workspace is resolved now; the save lands in that workspace even
        if the binding changes before the timer fires.
        """
        root = self.require_root()
        self._scheme(root, namespace).validate_id(entry_id)

        key = (str(root), namespace, entry_id)
        pending = self._pending.get(key)
        if pending is None:
            pending = _PendingSave(root=root, namespace=namespace, entry_id=entry_id, partial=dict(partial))
            self._pending[key] = pending
        else:
            if pending.handle is not None:
                pending.handle.cancel()
            pending.partial.update(partial)

        if delay is None:
            delay = self.config.save_delay_seconds
        pending.handle = asyncio.get_running_loop().call_later(delay, self._fire_pending, key)

    @property
    def pending_saves(self) -> int:
        return len(self._pending)

    def _fire_pending(self, key: Tuple[str, str, str]) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return
        task = asyncio.create_task(self._run_pending(pending))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_pending(self, pending: _PendingSave) -> None:
        try:
            await self._save_at(pending.root, pending.namespace, pending.entry_id, pending.partial)
        except FolioError:
            logger.exception(
                "Debounced save failed for %s entry %s/%s in %s",
                self.name,
                pending.namespace,
                pending.entry_id,
                pending.root,
            )

    async def flush(self) -> None:
        """Run every pending save now and wait for in-flight ones."""
        pending = list(self._pending.values())
        self._pending.clear()
        for item in pending:
            if item.handle is not None:
                item.handle.cancel()

        tasks = [asyncio.create_task(self._run_pending(item)) for item in pending]
        tasks.extend(self._inflight)
        if tasks:
            await asyncio.gather(*tasks)

    def cancel_pending(self) -> int:
        """Drop pending saves without writing. Returns how many were dropped."""
        count = len(self._pending)
        for item in self._pending.values():
            if item.handle is not None:
                item.handle.cancel()
        self._pending.clear()
        return count

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    async def start_watching(self) -> None:
        await self.watcher.start(self.require_root())

    async def stop_watching(self) -> None:
        await self.watcher.stop()

    async def close(self) -> None:
        await self.flush()
        await self.stop_watching()
