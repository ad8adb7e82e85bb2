"""Tests for SectionConfigStore."""

import json

import pytest

from folio.events import SectionConfigChangedEvent
from folio.exceptions import CorruptMetadataError, InvalidArgumentError, NoWorkspaceError
from folio.storage import OUTPUT, PERSONALITY, SectionConfig, SectionConfigStore


class TestSectionConfigModel:
    def test_aliases_and_extras(self):
        config = SectionConfig.model_validate({"model": "gpt-4o", "maxTokens": 100, "tone": "dry"})
        assert config.max_tokens == 100
        assert config.to_metadata() == {"model": "gpt-4o", "maxTokens": 100, "tone": "dry"}

    def test_temperature_range(self):
        with pytest.raises(ValueError):
            SectionConfig(temperature=3)


class TestSectionConfigStore:
    @pytest.mark.asyncio
    async def test_save_and_load(self, make_store, recorder, workspace):
        store = make_store(PERSONALITY)
        saved = await store.section_configs.save("voice", {"provider": "anthropic", "temperature": 0.3})

        path = workspace / "brain" / "voice" / "config.json"
        assert json.loads(path.read_text()) == {"provider": "anthropic", "temperature": 0.3}
        assert store.guard.should_ignore(path)

        loaded = await store.section_configs.load("voice")
        assert loaded == saved

        events = recorder.of_type(SectionConfigChangedEvent)
        assert [(event.store, event.namespace, event.config) for event in events] == [
            ("personality", "voice", {"provider": "anthropic", "temperature": 0.3})
        ]

    @pytest.mark.asyncio
    async def test_load_missing(self, make_store):
        store = make_store(OUTPUT)
        assert await store.section_configs.load("posts") is None

    @pytest.mark.asyncio
    async def test_load_corrupt(self, make_store, workspace):
        store = make_store(OUTPUT)
        path = workspace / "output" / "posts" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"temperature": "hot"}))
        with pytest.raises(CorruptMetadataError, match="temperature"):
            await store.section_configs.load("posts")

    @pytest.mark.asyncio
    async def test_load_non_utf8(self, make_store, workspace):
        store = make_store(OUTPUT)
        path = workspace / "output" / "posts" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_bytes(b'{"model": "\xff"}')
        with pytest.raises(CorruptMetadataError, match="not valid UTF-8"):
            await store.section_configs.load("posts")

    @pytest.mark.asyncio
    async def test_save_invalid(self, make_store):
        store = make_store(OUTPUT)
        with pytest.raises(InvalidArgumentError) as exc_info:
            await store.section_configs.save("posts", {"maxTokens": 0})
        assert exc_info.value.field == "maxTokens"

    @pytest.mark.asyncio
    async def test_save_validates_namespace(self, make_store):
        store = make_store(OUTPUT)
        with pytest.raises(InvalidArgumentError):
            await store.section_configs.save("drafts", {"model": "x"})

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, make_store, recorder, workspace):
        store = make_store(PERSONALITY)
        await store.section_configs.save("voice", SectionConfig(model="m"))
        recorder.clear()

        assert await store.section_configs.delete("voice") is True
        assert not (workspace / "brain" / "voice" / "config.json").exists()
        assert await store.section_configs.delete("voice") is False

        events = recorder.of_type(SectionConfigChangedEvent)
        assert [(event.namespace, event.config) for event in events] == [("voice", None)]

    @pytest.mark.asyncio
    async def test_requires_workspace(self, make_store):
        store = make_store(PERSONALITY, workspace=None)
        with pytest.raises(NoWorkspaceError):
            await store.section_configs.load("voice")

    def test_unsupported_store(self, writings_store):
        assert writings_store.section_configs is None
        with pytest.raises(InvalidArgumentError, match="does not support"):
            SectionConfigStore(writings_store)

    @pytest.mark.asyncio
    async def test_read_path(self, make_store, workspace):
        store = make_store(OUTPUT)
        await store.section_configs.save("posts", {"reasoning": True})
        path = workspace / "output" / "posts" / "config.json"
        assert store.section_configs.read_path(path) == {"reasoning": True}
        assert store.section_configs.read_path(path.parent / "missing.json") is None
