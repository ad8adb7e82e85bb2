"""Rebinds stores and their watchers when the workspace changes."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from folio.events import BaseEvent, EventBus, WorkspaceChangedEvent
from folio.exceptions import IOFailureError
from folio.storage import EntryStore

logger = logging.getLogger(__name__)


class WorkspaceLifecycleBinder:
    """Keeps every store bound to, and watching, the current workspace.

    On a switch each store first flushes its pending debounced saves (they
    land in the workspace they were scheduled for), then stops its watch,
    rebinds, creates its root directory and starts watching the new root.
    Clearing the workspace flushes, stops and unbinds.

    Bus notifications are delivered synchronously, so each one is turned
    into a task; transitions run one at a time under a lock.
    """

    def __init__(self, bus: EventBus, stores: Iterable[EntryStore], watch: bool = True):
        self.bus = bus
        self.stores: List[EntryStore] = list(stores)
        self.watch = watch
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._current: Optional[Path] = None

    @property
    def current_root(self) -> Optional[Path]:
        return self._current

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self._on_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_event(self, event: BaseEvent) -> None:
        if not isinstance(event, WorkspaceChangedEvent):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, ignoring workspace change to %s", event.current_path)
            return
        task = loop.create_task(self.apply(event.current_path))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Workspace transition failed: %s", error, exc_info=error)

    async def apply(self, workspace: Optional[Path]) -> None:
        """Bind every store to ``workspace``, or unbind them all when None."""
        async with self._lock:
            if workspace is None:
                await self._clear()
            else:
                await self._switch(Path(workspace))

    async def _switch(self, workspace: Path) -> None:
        logger.info("Switching %d store(s) to %s", len(self.stores), workspace)
        for store in self.stores:
            await store.flush()
            await store.stop_watching()
            store.bind(workspace)

            root = store.require_root()
            try:
                await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
            except OSError as e:
                raise IOFailureError("create store directory", root, e) from e

            if self.watch:
                await store.start_watching()
        self._current = workspace

    async def _clear(self) -> None:
        logger.info("Clearing workspace for %d store(s)", len(self.stores))
        for store in self.stores:
            await store.flush()
            await store.stop_watching()
            store.unbind()
        self._current = None

    async def wait_idle(self) -> None:
        """Wait until every scheduled transition has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self.detach()
        await self.wait_idle()
        for store in self.stores:
            await store.close()
