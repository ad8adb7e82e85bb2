"""Namespace-level default settings stored beside the entry folders."""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from folio.events import SectionConfigChangedEvent
from folio.exceptions import CorruptMetadataError, InvalidArgumentError, IOFailureError

from .codec import dump_metadata, read_metadata
from .models import SectionConfig
from .paths import PathLike, PathScheme

if TYPE_CHECKING:
    from .store import EntryStore

logger = logging.getLogger(__name__)


def read_section_config(path: PathLike) -> Optional[SectionConfig]:
    """Read a SectionConfig sidecar; None when it does not exist."""
    path = Path(path)
    try:
        data = read_metadata(path)
    except FileNotFoundError:
        return None
    try:
        return SectionConfig.model_validate(data)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise CorruptMetadataError(path, f"{field}: {error['msg']}") from e


def _write_section_config(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_metadata(data), encoding="utf-8")


class SectionConfigStore:
    """Load, save and delete the SectionConfig of each namespace of a store.

    Shares the owning store's workspace binding, write guard and event sink.
    """

    def __init__(self, store: "EntryStore"):
        if not store.schema.section_config:
            raise InvalidArgumentError(f"The {store.name} store does not support section configs.")
        self.store = store

    def _path(self, namespace: str) -> Path:
        root = self.store.require_root()
        self.store.schema.validate_namespace(namespace)
        return PathScheme(root, self.store.schema).section_config_path(namespace)

    def read_path(self, path: PathLike) -> Optional[Dict[str, Any]]:
        """Blocking read used by the watcher; returns metadata-style keys."""
        config = read_section_config(path)
        return config.to_metadata() if config is not None else None

    async def load(self, namespace: str) -> Optional[SectionConfig]:
        path = self._path(namespace)
        try:
            return await asyncio.to_thread(read_section_config, path)
        except OSError as e:
            raise IOFailureError("read section config", path, e) from e

    async def save(self, namespace: str, config: Union[SectionConfig, Mapping[str, Any]]) -> SectionConfig:
        path = self._path(namespace)
        if not isinstance(config, SectionConfig):
            try:
                config = SectionConfig.model_validate(dict(config))
            except ValidationError as e:
                error = e.errors()[0]
                field = ".".join(str(part) for part in error["loc"])
                raise InvalidArgumentError(f"Invalid section config {field}: {error['msg']}", field=field) from e

        data = config.to_metadata()
        self.store.guard.mark_written(path)
        try:
            await asyncio.to_thread(_write_section_config, path, data)
        except OSError as e:
            raise IOFailureError("write section config", path, e) from e

        logger.info("Saved %s section config for %s", self.store.name, namespace)
        self.store.sink.emit(SectionConfigChangedEvent(store=self.store.name, namespace=namespace, config=data))
        return config

    async def delete(self, namespace: str) -> bool:
        """Remove the sidecar. Returns False when there was nothing to remove."""
        path = self._path(namespace)
        self.store.guard.mark_written(path)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise IOFailureError("delete section config", path, e) from e

        logger.info("Deleted %s section config for %s", self.store.name, namespace)
        self.store.sink.emit(SectionConfigChangedEvent(store=self.store.name, namespace=namespace, config=None))
        return True
