"""Tests for WorkspaceService."""

import json

import pytest

from folio.events import WorkspaceChangedEvent
from folio.exceptions import InvalidArgumentError
from folio.workspace import MAX_RECENT_WORKSPACES, WorkspaceService


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / "workspace.json"


@pytest.fixture
def service(recorder, state_path):
    return WorkspaceService(recorder, state_path=state_path)


class TestSetCurrent:
    def test_set_current_emits_event(self, service, recorder, tmp_path):
        ws = tmp_path / "ws"
        ws.mkdir()

        assert service.set_current(ws) == ws.resolve()
        assert service.get_current() == ws.resolve()
        assert service.has_workspace()

        events = recorder.of_type(WorkspaceChangedEvent)
        assert len(events) == 1
        assert events[0].current_path == ws.resolve()
        assert events[0].previous_path is None

    def test_previous_path(self, service, recorder, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.mkdir()
        second.mkdir()
        service.set_current(first)
        service.set_current(second)
        assert recorder.events[-1].previous_path == first.resolve()

    def test_relative_path_is_resolved(self, service, tmp_path, monkeypatch):
        (tmp_path / "ws").mkdir()
        monkeypatch.chdir(tmp_path)
        assert service.set_current("ws") == (tmp_path / "ws").resolve()

    def test_missing_path(self, service, recorder, tmp_path):
        with pytest.raises(InvalidArgumentError, match="does not exist"):
            service.set_current(tmp_path / "missing")
        assert recorder.events == []
        assert not service.has_workspace()

    def test_file_path(self, service, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(InvalidArgumentError, match="not a directory"):
            service.set_current(target)

    def test_empty_path(self, service):
        with pytest.raises(InvalidArgumentError, match="non-empty"):
            service.set_current("  ")

    def test_clear(self, service, recorder, tmp_path):
        service.set_current(tmp_path)
        service.clear()
        assert service.get_current() is None
        assert recorder.events[-1].cleared
        assert recorder.events[-1].previous_path == tmp_path.resolve()


class TestPersistence:
    def test_state_is_saved(self, service, state_path, tmp_path):
        service.set_current(tmp_path)
        data = json.loads(state_path.read_text())
        assert data["current_workspace"] == str(tmp_path.resolve())
        assert data["recent_workspaces"][0]["path"] == str(tmp_path.resolve())

    def test_initialize_restores_without_event(self, service, recorder, state_path, tmp_path):
        service.set_current(tmp_path)
        recorder.clear()

        restored = WorkspaceService(recorder, state_path=state_path)
        assert restored.get_current() is None
        assert restored.initialize() == tmp_path.resolve()
        assert restored.get_current() == tmp_path.resolve()
        assert recorder.events == []

    def test_initialize_drops_missing_workspace(self, service, recorder, state_path, tmp_path):
        ws = tmp_path / "gone"
        ws.mkdir()
        service.set_current(ws)
        ws.rmdir()

        restored = WorkspaceService(recorder, state_path=state_path)
        assert restored.initialize() is None
        assert json.loads(state_path.read_text())["current_workspace"] is None

    def test_corrupt_state_file(self, recorder, state_path, caplog):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{nope")
        service = WorkspaceService(recorder, state_path=state_path)
        assert service.initialize() is None
        assert "Failed to load workspace state" in caplog.text

    def test_without_state_path(self, recorder, tmp_path):
        service = WorkspaceService(recorder)
        service.set_current(tmp_path)
        assert service.get_recent()[0].path == str(tmp_path.resolve())


class TestRecent:
    def test_most_recent_first_without_duplicates(self, service, tmp_path):
        paths = []
        for name in ("a", "b", "c"):
            path = tmp_path / name
            path.mkdir()
            paths.append(path)
            service.set_current(path)
        service.set_current(paths[0])

        assert [item.path for item in service.get_recent()] == [
            str(paths[0].resolve()),
            str(paths[2].resolve()),
            str(paths[1].resolve()),
        ]

    def test_capped(self, service, tmp_path):
        for i in range(MAX_RECENT_WORKSPACES + 3):
            path = tmp_path / f"ws{i}"
            path.mkdir()
            service.set_current(path)
        assert len(service.get_recent()) == MAX_RECENT_WORKSPACES

    def test_remove_recent(self, service, tmp_path):
        service.set_current(tmp_path)
        service.remove_recent(tmp_path)
        assert service.get_recent() == []
