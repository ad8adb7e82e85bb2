"""Filesystem watch for one store root with debounce and self-write suppression."""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

from folio.events import ChangeType, EventSink, SectionConfigChangedEvent, WatcherErrorEvent, entry_event
from folio.exceptions import FolioError, WatcherFailureError

from .backends import WatchBackend, WatchfilesBackend
from .guard import DEFAULT_WINDOW_SECONDS, WriteGuard
from .paths import PathLike, PathScheme, normalize
from .schemas import StoreSchema

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3

SectionConfigLoader = Callable[[Path], Optional[Dict[str, Any]]]


class WatcherState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    WATCHING = "watching"
    STOPPING = "stopping"


class ChangeWatcher:
    """Turns raw filesystem notifications into entry events.

    Each raw event is dropped if the store wrote that path recently (see
    WriteGuard), otherwise it arms a per-path timer. Repeated events for the
    same path reset the timer; when it fires the path is decoded and one
    event is emitted with the most recent change type.

    Timers remember the PathScheme they were armed under, so a timer that
    fires after a workspace switch is discarded rather than decoded against
    the new root.
    """

    def __init__(
        self,
        schema: StoreSchema,
        sink: EventSink,
        *,
        store_name: Optional[str] = None,
        backend: Optional[WatchBackend] = None,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        guard: Optional[WriteGuard] = None,
        guard_window: float = DEFAULT_WINDOW_SECONDS,
        section_config_loader: Optional[SectionConfigLoader] = None,
    ):
        self.schema = schema
        self.sink = sink
        self.store_name = store_name or schema.name
        self.backend = backend or WatchfilesBackend()
        self.debounce = debounce
        self.guard = guard if guard is not None else WriteGuard(guard_window)
        self.section_config_loader = section_config_loader

        self.state = WatcherState.STOPPED
        self.root: Optional[Path] = None
        self._scheme: Optional[PathScheme] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._reloads: Set[asyncio.Task] = set()
        self.last_error: Optional[WatcherFailureError] = None

    @property
    def is_watching(self) -> bool:
        return self.state == WatcherState.WATCHING

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    async def start(self, root: PathLike) -> None:
        """Watch ``root``; restarting on a different root stops the old watch first."""
        root = Path(normalize(root))
        if self.is_watching and self.root == root:
            return
        if self.state != WatcherState.STOPPED or self._task is not None:
            await self.stop()

        self.state = WatcherState.STARTING
        self.last_error = None
        self.root = root
        self._scheme = PathScheme(root, self.schema)
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._scheme, self._stop_event))
        self.state = WatcherState.WATCHING
        logger.info("Watching %s store at %s", self.store_name, root)

    async def stop(self) -> None:
        """Close the watch, cancel pending timers and clear the write guard."""
        if self.state == WatcherState.STOPPING:
            return
        previous = self.root
        self.state = WatcherState.STOPPING

        if self._stop_event is not None:
            self._stop_event.set()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self._cancel_timers()
        self.guard.clear()
        self.root = None
        self._scheme = None
        self._stop_event = None
        self.state = WatcherState.STOPPED
        if previous is not None:
            logger.info("Stopped watching %s store at %s", self.store_name, previous)

    async def _run(self, scheme: PathScheme, stop_event: asyncio.Event) -> None:
        try:
            async for batch in self.backend.watch(scheme.root, scheme.include, stop_event):
                for raw in batch:
                    self._handle(raw.change, raw.path, scheme)
        except Exception as e:
            logger.exception("Watcher failed for %s store at %s", self.store_name, scheme.root)
            error = WatcherFailureError(str(e) or type(e).__name__)
            error.__cause__ = e
            self._fail(scheme, error)
        else:
            logger.debug("Watch on %s ended", scheme.root)

    def _fail(self, scheme: PathScheme, error: WatcherFailureError) -> None:
        if scheme is not self._scheme:
            return
        self._cancel_timers()
        self._task = None
        self._stop_event = None
        self._scheme = None
        self.root = None
        self.state = WatcherState.STOPPED
        self.last_error = error
        self.sink.emit(WatcherErrorEvent(store=self.store_name, message=str(error)))

    # ------------------------------------------------------------------
    # Raw events
    # ------------------------------------------------------------------

    def _handle(self, change: ChangeType, path: PathLike, scheme: PathScheme) -> None:
        if not scheme.include(path):
            return
        key = normalize(path)
        rel = scheme.relative_parts(key)
        if rel is not None and len(rel) < 2:
            # Root and namespace directories carry no entry
            logger.debug("Ignoring directory change: %s", key)
            return
        if self.guard.should_ignore(key):
            logger.debug("Ignoring app-generated change: %s", key)
            return

        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.debounce, self._fire, key, change, scheme)

    def _fire(self, key: str, change: ChangeType, scheme: PathScheme) -> None:
        self._timers.pop(key, None)
        if scheme is not self._scheme:
            return

        ref = scheme.decode(key)
        if ref is None:
            logger.warning("Could not extract an entry id from %s", key)
            return

        if ref.kind == "section-config":
            task = asyncio.get_running_loop().create_task(
                self._emit_section_config(scheme, ref.namespace, change, Path(key))
            )
            self._reloads.add(task)
            task.add_done_callback(self._reloads.discard)
            return

        logger.debug("%s entry %s: %s/%s", self.store_name, change, ref.namespace, ref.entry_id)
        self.sink.emit(
            entry_event(
                change,
                store=self.store_name,
                namespace=ref.namespace,
                entry_id=ref.entry_id,
                path=Path(key),
            )
        )

    async def _emit_section_config(self, scheme: PathScheme, namespace: str, change: ChangeType, path: Path) -> None:
        config = None
        if change != "removed" and self.section_config_loader is not None:
            try:
                config = await asyncio.to_thread(self.section_config_loader, path)
            except (FolioError, OSError) as e:
                logger.warning("Could not read section config %s: %s", path, e)
                return
        if scheme is not self._scheme:
            return
        self.sink.emit(SectionConfigChangedEvent(store=self.store_name, namespace=namespace, config=config))

    def emit_removed(self, namespace: str, entry_id: str, path: PathLike) -> None:
        """Emit a removal right away, used after the store deletes an entry itself."""
        key = normalize(path)
        pending = self._timers.pop(key, None)
        if pending is not None:
            pending.cancel()
        self.sink.emit(
            entry_event("removed", store=self.store_name, namespace=namespace, entry_id=entry_id, path=Path(key))
        )

    def _cancel_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for task in self._reloads:
            task.cancel()
