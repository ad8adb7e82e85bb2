"""Test configuration and fixtures."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Type

import pytest

from folio.config import FolioConfig
from folio.events import BaseEvent
from folio.storage import OUTPUT, PERSONALITY, WRITINGS, EntryStore, RawEvent

# 2024-03-10 09:00:00 local time
FIXED_NOW_MS = int(datetime(2024, 3, 10, 9, 0, 0).timestamp() * 1000)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = FIXED_NOW_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeMonotonic:
    """Seconds clock for WriteGuard tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """Event sink that keeps everything it receives."""

    def __init__(self):
        self.events: List[BaseEvent] = []

    def emit(self, event: BaseEvent) -> None:
        self.events.append(event)

    def of_type(self, cls: Type[BaseEvent]) -> List[BaseEvent]:
        return [event for event in self.events if isinstance(event, cls)]

    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def clear(self) -> None:
        self.events.clear()


class FakeBackend:
    """In-memory watch backend; tests push raw events into it."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.roots: List[Path] = []
        self.active = False

    async def watch(self, root, watch_filter, stop_event):
        self.roots.append(root)
        self.active = True
        try:
            while not stop_event.is_set():
                getter = asyncio.ensure_future(self.queue.get())
                stopper = asyncio.ensure_future(stop_event.wait())
                try:
                    await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    stopper.cancel()
                    if not getter.done():
                        getter.cancel()
                if not getter.done() or getter.cancelled():
                    continue

                item = getter.result()
                if isinstance(item, Exception):
                    self.queue.task_done()
                    raise item
                batch = [event for event in item if watch_filter(event.path)]
                if batch:
                    yield batch
                self.queue.task_done()
        finally:
            self.active = False

    def push(self, change: str, path) -> None:
        self.queue.put_nowait([RawEvent(change, str(path))])

    def fail(self, error: Exception) -> None:
        self.queue.put_nowait(error)

    async def drain(self) -> None:
        """Wait until the watcher has consumed everything pushed so far."""
        await asyncio.wait_for(self.queue.join(), timeout=2)


DEBOUNCE_SECONDS = 0.02


async def settle(seconds: float = DEBOUNCE_SECONDS * 4) -> None:
    """Let debounce timers fire."""
    await asyncio.sleep(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def folio_config(tmp_path):
    return FolioConfig(debounce_ms=int(DEBOUNCE_SECONDS * 1000), save_delay_ms=20, state_dir=tmp_path / "state")


@pytest.fixture
def workspace(tmp_path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def make_store(recorder, backend, folio_config, clock, workspace):
    def _make(schema=WRITINGS, **kwargs):
        kwargs.setdefault("workspace", workspace)
        kwargs.setdefault("backend", backend)
        kwargs.setdefault("config", folio_config)
        kwargs.setdefault("clock", clock)
        return EntryStore(schema, recorder, **kwargs)

    return _make


@pytest.fixture
def writings_store(make_store):
    return make_store(WRITINGS)


@pytest.fixture
def personality_store(make_store):
    return make_store(PERSONALITY)


@pytest.fixture
def output_store(make_store):
    return make_store(OUTPUT)
