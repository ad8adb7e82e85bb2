"""ChangeWatcher against real filesystem notifications from watchfiles."""

import asyncio
import json
import shutil

import pytest
import pytest_asyncio

from folio.events import EntryAddedEvent, EntryEvent, EntryRemovedEvent
from folio.storage import WatchfilesBackend

# Time for the OS watch to be registered before touching the tree
WATCH_READY_SECONDS = 0.5


async def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.05)
    return True


@pytest.fixture(params=[False, True], ids=["native", "polling"])
def real_backend(request):
    return WatchfilesBackend(force_polling=request.param, poll_delay_ms=50)


@pytest_asyncio.fixture
async def live_store(make_store, real_backend, workspace):
    (workspace / "writings").mkdir()
    store = make_store(backend=real_backend)
    await store.start_watching()
    await asyncio.sleep(WATCH_READY_SECONDS)
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_own_writes_produce_no_events(live_store, recorder):
    result = await live_store.create("writings", {"title": "Mine", "content": "first"})
    await live_store.save("writings", result.id, {"title": "Still mine", "content": "second"})

    await asyncio.sleep(1.0)
    assert not any(isinstance(event, EntryEvent) for event in recorder.events)


@pytest.mark.asyncio
async def test_external_create_and_remove(live_store, recorder, workspace, caplog):
    folder = workspace / "writings" / "2024-01-01_120000"
    folder.mkdir()
    (folder / "config.json").write_text(json.dumps({"title": "From elsewhere"}))

    added = lambda: [e for e in recorder.of_type(EntryAddedEvent) if e.entry_id == folder.name]  # noqa: E731
    assert await wait_for(added)
    assert all(event.namespace == "writings" for event in added())

    shutil.rmtree(folder)

    removed = lambda: [e for e in recorder.of_type(EntryRemovedEvent) if e.entry_id == folder.name]  # noqa: E731
    assert await wait_for(removed)
    assert "Could not extract an entry id" not in caplog.text
