"""Tests for ChangeWatcher through the store's watch lifecycle."""

import json
import threading

import pytest
import pytest_asyncio

from folio.events import (
    EntryAddedEvent,
    EntryChangedEvent,
    EntryEvent,
    EntryRemovedEvent,
    SectionConfigChangedEvent,
    WatcherErrorEvent,
)
from folio.exceptions import WatcherFailureError
from folio.storage import OUTPUT, PERSONALITY, WatcherState

from conftest import settle


@pytest_asyncio.fixture
async def watching_store(writings_store, backend):
    await writings_store.start_watching()
    yield writings_store
    await writings_store.close()


def entry_folder(workspace, entry_id="2024-01-01_120000"):
    folder = workspace / "writings" / entry_id
    folder.mkdir(parents=True, exist_ok=True)
    return folder


class TestExternalChanges:
    @pytest.mark.asyncio
    async def test_external_edit_is_reported(self, watching_store, backend, recorder, workspace):
        folder = entry_folder(workspace)
        backend.push("changed", folder / "content.md")
        await backend.drain()
        await settle()

        events = recorder.of_type(EntryChangedEvent)
        assert len(events) == 1
        assert events[0].entry_id == "2024-01-01_120000"
        assert events[0].namespace == "writings"
        assert events[0].store == "writings"
        assert events[0].path == folder / "content.md"
        assert events[0].to_payload()["id"] == "2024-01-01_120000"

    @pytest.mark.asyncio
    async def test_events_are_debounced_per_path(self, watching_store, backend, recorder, workspace):
        folder = entry_folder(workspace)
        backend.push("added", folder / "config.json")
        backend.push("changed", folder / "config.json")
        backend.push("changed", folder / "config.json")
        await backend.drain()
        assert recorder.events == []

        await settle()
        assert recorder.names() == ["entry-changed"]

    @pytest.mark.asyncio
    async def test_separate_paths_each_emit(self, watching_store, backend, recorder, workspace):
        folder = entry_folder(workspace)
        backend.push("added", folder)
        backend.push("added", folder / "config.json")
        await backend.drain()
        await settle()

        added = recorder.of_type(EntryAddedEvent)
        assert {event.path for event in added} == {folder, folder / "config.json"}
        assert {event.entry_id for event in added} == {"2024-01-01_120000"}

    @pytest.mark.asyncio
    async def test_directory_removal(self, watching_store, backend, recorder, workspace):
        folder = workspace / "writings" / "2024-01-01_120000"
        backend.push("removed", folder)
        await backend.drain()
        await settle()

        removed = recorder.of_type(EntryRemovedEvent)
        assert [event.entry_id for event in removed] == ["2024-01-01_120000"]

    @pytest.mark.asyncio
    async def test_filtered_paths_are_dropped(self, watching_store, backend, recorder, workspace):
        folder = entry_folder(workspace)
        backend.push("changed", folder / "notes.txt")
        backend.push("changed", folder / ".content.md.swp")
        backend.push("changed", workspace / "drafts" / "2024-01-01_120000")
        await backend.drain()
        await settle()
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_root_and_namespace_directories_are_quiet(self, watching_store, backend, recorder, workspace, caplog):
        backend.push("changed", workspace)
        backend.push("added", workspace / "writings")
        await backend.drain()
        await settle()
        assert recorder.events == []
        assert watching_store.watcher.pending_count == 0
        assert "Could not extract an entry id" not in caplog.text


class TestSelfWrites:
    @pytest.mark.asyncio
    async def test_own_writes_are_not_reported(self, watching_store, backend, recorder):
        result = await watching_store.create("writings", {"title": "Mine", "content": "x"})
        backend.push("added", result.path)
        backend.push("added", result.path / "config.json")
        backend.push("added", result.path / "content.md")
        await watching_store.save("writings", result.id, {"title": "Still mine"})
        backend.push("changed", result.path / "config.json")
        await backend.drain()
        await settle()

        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_delete_reports_once(self, watching_store, backend, recorder):
        result = await watching_store.create("writings", {"title": "Gone"})
        await watching_store.delete("writings", result.id)
        backend.push("removed", result.path / "config.json")
        backend.push("removed", result.path)
        await backend.drain()
        await settle()

        assert recorder.names() == ["entry-removed"]


class TestSectionConfig:
    @pytest.mark.asyncio
    async def test_section_config_change(self, make_store, backend, recorder, workspace):
        store = make_store(OUTPUT)
        await store.start_watching()
        path = workspace / "output" / "posts" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"model": "gpt-4.1", "maxTokens": 512}))

        backend.push("changed", path)
        await backend.drain()
        await settle()

        events = recorder.of_type(SectionConfigChangedEvent)
        assert len(events) == 1
        assert events[0].namespace == "posts"
        assert events[0].config == {"model": "gpt-4.1", "maxTokens": 512}
        await store.close()

    @pytest.mark.asyncio
    async def test_section_config_removed(self, make_store, backend, recorder, workspace):
        store = make_store(PERSONALITY)
        await store.start_watching()
        backend.push("removed", workspace / "brain" / "voice" / "config.json")
        await backend.drain()
        await settle()

        events = recorder.of_type(SectionConfigChangedEvent)
        assert [(event.namespace, event.config) for event in events] == [("voice", None)]
        await store.close()

    @pytest.mark.asyncio
    async def test_unreadable_section_config_is_skipped(self, make_store, backend, recorder, workspace, caplog):
        store = make_store(PERSONALITY)
        await store.start_watching()
        path = workspace / "brain" / "voice" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text("{broken")

        backend.push("changed", path)
        await backend.drain()
        await settle()

        assert recorder.events == []
        assert "Could not read section config" in caplog.text
        await store.close()

    @pytest.mark.asyncio
    async def test_non_utf8_section_config_is_skipped(self, make_store, backend, recorder, workspace, caplog):
        store = make_store(OUTPUT)
        await store.start_watching()
        path = workspace / "output" / "posts" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_bytes(b'{"model": "\xff\xfe"}')

        backend.push("changed", path)
        await backend.drain()
        await settle()

        assert recorder.events == []
        assert "not valid UTF-8" in caplog.text
        await store.close()

    @pytest.mark.asyncio
    async def test_reload_finishing_after_stop_is_dropped(self, make_store, backend, recorder, workspace):
        store = make_store(OUTPUT)
        release = threading.Event()

        def slow_loader(path):
            release.wait(timeout=2)
            return {"model": "late"}

        store.watcher.section_config_loader = slow_loader
        await store.start_watching()
        backend.push("changed", workspace / "output" / "posts" / "config.json")
        await backend.drain()
        await settle()

        await store.close()
        release.set()
        await settle()
        assert recorder.of_type(SectionConfigChangedEvent) == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_same_root_is_noop(self, writings_store, backend, workspace):
        await writings_store.start_watching()
        await settle(0)
        await writings_store.start_watching()
        assert backend.roots == [workspace]
        assert writings_store.watcher.state == WatcherState.WATCHING
        await writings_store.close()

    @pytest.mark.asyncio
    async def test_restart_on_new_root(self, writings_store, backend, workspace, tmp_path):
        await writings_store.start_watching()
        await settle(0)
        other = tmp_path / "other"
        other.mkdir()
        writings_store.bind(other)
        await writings_store.start_watching()
        await settle(0)

        assert backend.roots == [workspace, other]
        assert writings_store.watcher.root == other
        await writings_store.close()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_timers(self, writings_store, backend, recorder, workspace):
        await writings_store.start_watching()
        writings_store.guard.mark_written(workspace / "unrelated")
        backend.push("changed", entry_folder(workspace) / "content.md")
        await backend.drain()
        assert writings_store.watcher.pending_count == 1

        await writings_store.stop_watching()
        await settle()

        assert recorder.events == []
        assert writings_store.watcher.pending_count == 0
        assert len(writings_store.guard) == 0
        assert writings_store.watcher.state == WatcherState.STOPPED
        assert backend.active is False

    @pytest.mark.asyncio
    async def test_backend_failure(self, writings_store, backend, recorder):
        await writings_store.start_watching()
        backend.fail(OSError("inotify watch limit reached"))
        await backend.drain()
        await settle()

        errors = recorder.of_type(WatcherErrorEvent)
        assert len(errors) == 1
        assert errors[0].message == "inotify watch limit reached"
        assert errors[0].store == "writings"
        assert writings_store.watcher.state == WatcherState.STOPPED
        assert isinstance(writings_store.watcher.last_error, WatcherFailureError)
        assert isinstance(writings_store.watcher.last_error.__cause__, OSError)

        # Store keeps working without live updates
        result = await writings_store.create("writings", {"title": "Still works"})
        assert result.path.exists()
        assert not any(isinstance(event, EntryEvent) for event in recorder.events)
