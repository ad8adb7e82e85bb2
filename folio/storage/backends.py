"""OS watch backends feeding the ChangeWatcher."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, List, Protocol

from watchfiles import Change, awatch

from folio.events import ChangeType

logger = logging.getLogger(__name__)

WatchFilter = Callable[[str], bool]

_CHANGE_MAP = {
    Change.added: "added",
    Change.modified: "changed",
    Change.deleted: "removed",
}


@dataclass(frozen=True)
class RawEvent:
    """One filesystem notification before debouncing."""

    change: ChangeType
    path: str


class WatchBackend(Protocol):
    """Source of raw filesystem notifications for a directory tree."""

    def watch(self, root: Path, watch_filter: WatchFilter, stop_event: asyncio.Event) -> AsyncIterator[List[RawEvent]]:
        """Yield batches of events until ``stop_event`` is set."""
        ...


class WatchfilesBackend:
    """Recursive watch built on ``watchfiles.awatch``.

    watchfiles batches changes itself; its own debounce is kept short since
    the ChangeWatcher applies a per-path debounce on top.
    """

    def __init__(self, force_polling: bool = False, poll_delay_ms: int = 300, debounce_ms: int = 50):
        self.force_polling = force_polling
        self.poll_delay_ms = poll_delay_ms
        self.debounce_ms = debounce_ms

    async def watch(
        self, root: Path, watch_filter: WatchFilter, stop_event: asyncio.Event
    ) -> AsyncIterator[List[RawEvent]]:
        logger.debug("Starting watchfiles on %s (polling=%s)", root, self.force_polling)
        async for changes in awatch(
            root,
            watch_filter=lambda _change, path: watch_filter(path),
            stop_event=stop_event,
            debounce=self.debounce_ms,
            step=10,
            force_polling=self.force_polling,
            poll_delay_ms=self.poll_delay_ms,
        ):
            batch = [RawEvent(_CHANGE_MAP[change], path) for change, path in changes if change in _CHANGE_MAP]
            if batch:
                yield batch
