"""Self-write suppression for the change watcher."""

import logging
import time
from typing import Callable, Dict, Iterable

from .paths import PathLike, normalize

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 2.0


class WriteGuard:
    """Expiring set of paths the store wrote recently.

    Watch notifications arrive asynchronously relative to the write that
    caused them, so a path stays marked for a fixed window. Expired marks are
    purged lazily on access; no timers are involved, and the clock is
    injectable so tests can step time explicitly.
    """

    def __init__(self, window: float = DEFAULT_WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._expiry: Dict[str, float] = {}

    def mark_written(self, path: PathLike) -> None:
        """Mark a path before writing (or deleting) it."""
        key = normalize(path)
        self._expiry[key] = self._clock() + self.window
        logger.debug("Marked as written: %s", key)

    def mark_many(self, paths: Iterable[PathLike]) -> None:
        for path in paths:
            self.mark_written(path)

    def should_ignore(self, path: PathLike) -> bool:
        """True if the path was marked within the window."""
        self._purge()
        return normalize(path) in self._expiry

    def clear(self) -> None:
        self._expiry.clear()

    def __contains__(self, path: PathLike) -> bool:
        return self.should_ignore(path)

    def __len__(self) -> int:
        self._purge()
        return len(self._expiry)

    def _purge(self) -> None:
        now = self._clock()
        expired = [key for key, deadline in self._expiry.items() if deadline <= now]
        for key in expired:
            del self._expiry[key]
