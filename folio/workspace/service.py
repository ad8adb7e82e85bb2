"""Current workspace selection, persisted across runs."""

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Union

from folio.events import EventSink, WorkspaceChangedEvent
from folio.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

MAX_RECENT_WORKSPACES = 10
STATE_FILENAME = "workspace.json"


@dataclass
class RecentWorkspace:
    path: str
    last_opened: int = 0

    def __post_init__(self):
        if not self.last_opened:
            self.last_opened = int(time.time() * 1000)


class WorkspaceService:
    """Tracks the active workspace directory.

    Setting or clearing the workspace emits WorkspaceChangedEvent on the sink.
    When a state path is given, the current workspace and the recent list are
    saved there with atomic writes and restored by ``initialize()``.
    """

    def __init__(self, sink: EventSink, state_path: Optional[Path] = None):
        self.sink = sink
        self.state_path = state_path
        self._current: Optional[Path] = None
        self._persisted: Optional[str] = None
        self._recent: List[RecentWorkspace] = []
        self._load()

    def initialize(self) -> Optional[Path]:
        """Restore the persisted workspace if it still exists (no event is emitted)."""
        if not self._persisted:
            logger.debug("No persisted workspace")
            return None

        candidate = Path(self._persisted)
        if candidate.is_dir():
            self._current = candidate
            logger.info("Restored workspace %s", candidate)
        else:
            logger.info("Persisted workspace no longer exists, clearing: %s", candidate)
            self._persisted = None
            self._save()
        return self._current

    def get_current(self) -> Optional[Path]:
        return self._current

    def has_workspace(self) -> bool:
        return self._current is not None

    def set_current(self, path: Union[str, Path]) -> Path:
        """Switch to ``path`` after checking it is an existing directory.

        Raises:
            InvalidArgumentError: If the path is empty, missing or not a directory
        """
        if not path or not str(path).strip():
            raise InvalidArgumentError("Workspace path must be a non-empty string.", field="path")

        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise InvalidArgumentError(f"Workspace path does not exist: {resolved}", field="path")
        if not resolved.is_dir():
            raise InvalidArgumentError(f"Workspace path is not a directory: {resolved}", field="path")

        previous = self._current
        self._current = resolved
        self._persisted = str(resolved)
        self._add_recent(str(resolved))
        self._save()

        logger.info("Workspace changed: %s -> %s", previous, resolved)
        self.sink.emit(WorkspaceChangedEvent(current_path=resolved, previous_path=previous))
        return resolved

    def clear(self) -> None:
        previous = self._current
        self._current = None
        self._persisted = None
        self._save()

        logger.info("Workspace cleared, was: %s", previous)
        self.sink.emit(WorkspaceChangedEvent(current_path=None, previous_path=previous))

    # ------------------------------------------------------------------
    # Recent workspaces
    # ------------------------------------------------------------------

    def get_recent(self) -> List[RecentWorkspace]:
        return list(self._recent)

    def remove_recent(self, path: Union[str, Path]) -> None:
        key = str(Path(path).expanduser().resolve())
        self._recent = [item for item in self._recent if item.path != key]
        self._save()
        logger.info("Removed from recent workspaces: %s", key)

    def _add_recent(self, path: str) -> None:
        self._recent = [item for item in self._recent if item.path != path]
        self._recent.insert(0, RecentWorkspace(path=path))
        del self._recent[MAX_RECENT_WORKSPACES:]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if self.state_path is None or not self.state_path.exists():
            return
        try:
            data = json.loads(self.state_path.read_text(encoding="utf-8"))
            self._persisted = data.get("current_workspace")
            self._recent = [RecentWorkspace(**item) for item in data.get("recent_workspaces", [])]
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.error("Failed to load workspace state from %s: %s", self.state_path, e)

    def _save(self) -> None:
        if self.state_path is None:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "current_workspace": self._persisted,
            "recent_workspaces": [asdict(item) for item in self._recent],
        }
        tmp = self.state_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(str(tmp), str(self.state_path))
