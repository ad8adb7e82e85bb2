"""Mapping between entry identifiers and on-disk locations.

Layout under a store root:

    <root>/<namespace>/<YYYY-MM-DD_HHmmss[-N]>/config.json
    <root>/<namespace>/<YYYY-MM-DD_HHmmss[-N]>/<content files>
    <root>/<namespace>/config.json          # SectionConfig
    <root>/<namespace>/<millis>.md          # legacy, read-only

The folder name is the entry ID. Two entries created within the same
second get a numeric suffix (``2024-03-10_090000-2``).
"""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

from folio.exceptions import InvalidArgumentError

from .models import EntryRef
from .schemas import StoreSchema

DATE_FOLDER_RE = re.compile(r"^\d{4}-\d{2}-\d{2}_\d{6}(?:-(?:[2-9]|[1-9]\d+))?$")
LEGACY_ID_RE = re.compile(r"^\d{10,}$")
LEGACY_SUFFIXES = (".md", ".json")

PathLike = Union[str, "os.PathLike[str]"]


def encode(timestamp_ms: float) -> str:
    """Format a Unix-ms timestamp as a local-time folder name: YYYY-MM-DD_HHmmss."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d_%H%M%S")


def with_suffix(folder_name: str, attempt: int) -> str:
    """Disambiguate a folder name; attempt 1 is the bare name."""
    return folder_name if attempt <= 1 else f"{folder_name}-{attempt}"


def is_date_folder(name: str) -> bool:
    return DATE_FOLDER_RE.match(name) is not None


def is_legacy_id(entry_id: str) -> bool:
    return LEGACY_ID_RE.match(entry_id) is not None


def split_legacy_name(name: str) -> Optional[Tuple[str, str]]:
    """Return (id, suffix) for a legacy ``<millis>.md``/``.json`` file name."""
    stem, suffix = os.path.splitext(name)
    if suffix in LEGACY_SUFFIXES and is_legacy_id(stem):
        return stem, suffix
    return None


def normalize(path: PathLike) -> str:
    """Absolute, OS-separator-correct form used as a comparison key."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


class PathScheme:
    """Path encoding for one store root."""

    def __init__(self, root: PathLike, schema: StoreSchema):
        self.root = Path(normalize(root))
        self.schema = schema

    def __repr__(self) -> str:
        return f"PathScheme(root={str(self.root)!r}, schema={self.schema.name!r})"

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def namespace_path(self, namespace: str) -> Path:
        return self.root / namespace

    def entry_path(self, namespace: str, entry_id: str) -> Path:
        return self.root / namespace / entry_id

    def section_config_path(self, namespace: str) -> Path:
        return self.root / namespace / self.schema.metadata_filename

    def legacy_path(self, namespace: str, entry_id: str, suffix: str = ".md") -> Path:
        return self.root / namespace / f"{entry_id}{suffix}"

    def validate_id(self, entry_id: str) -> None:
        if not isinstance(entry_id, str) or not (
            is_date_folder(entry_id) or (self.schema.legacy_files and is_legacy_id(entry_id))
        ):
            raise InvalidArgumentError(
                f'Invalid entry id "{entry_id}". Expected a folder name like 2024-03-10_090000.',
                field="id",
            )

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def relative_parts(self, path: PathLike) -> Optional[Tuple[str, ...]]:
        """Path components after the store root.

        Falls back to the last occurrence of the root directory name when the
        path is not under the exact root (e.g. reported through a symlink).
        """
        normalized = Path(normalize(path))
        try:
            return normalized.relative_to(self.root).parts
        except ValueError:
            pass

        parts = normalized.parts
        marker = self.root.name
        if not marker or marker not in parts:
            return None
        index = len(parts) - 1 - parts[::-1].index(marker)
        return parts[index + 1 :]

    def decode(self, path: PathLike) -> Optional[EntryRef]:
        """Resolve a path inside the store to the entry (or sidecar) it belongs to."""
        rel = self.relative_parts(path)
        if rel is None or len(rel) < 2 or len(rel) > 3:
            return None

        namespace, name = rel[0], rel[1]
        if not self.schema.is_namespace(namespace):
            return None

        if is_date_folder(name):
            if len(rel) == 3 and not self.schema.is_entry_file(rel[2]):
                return None
            return EntryRef(namespace, name, "entry")

        if len(rel) != 2:
            return None

        if self.schema.section_config and name == self.schema.metadata_filename:
            return EntryRef(namespace, None, "section-config")

        if self.schema.legacy_files:
            legacy = split_legacy_name(name)
            if legacy is not None:
                return EntryRef(namespace, legacy[0], "legacy")

        return None

    def include(self, path: PathLike) -> bool:
        """Depth-aware watch filter.

        depth 0: the root itself; depth 1: recognized namespace directories;
        depth 2: entry folders, the namespace config sidecar and legacy files;
        depth 3: the fixed metadata/content file names inside an entry folder.
        """
        rel = self.relative_parts(path)
        if rel is None:
            return False
        if not rel:
            return True

        base = rel[-1]
        if base.startswith(".") or base.endswith(".tmp"):
            return False
        if not self.schema.is_namespace(rel[0]):
            return False

        depth = len(rel)
        if depth == 1:
            return True
        if depth == 2:
            name = rel[1]
            if is_date_folder(name):
                return True
            if self.schema.section_config and name == self.schema.metadata_filename:
                return True
            return self.schema.legacy_files and split_legacy_name(name) is not None
        if depth == 3:
            return is_date_folder(rel[1]) and self.schema.is_entry_file(rel[2])
        return False

    def list_namespaces(self) -> List[str]:
        """Existing namespace directories under the root (blocking)."""
        if not self.root.is_dir():
            return []
        return sorted(
            child.name for child in self.root.iterdir() if child.is_dir() and self.schema.is_namespace(child.name)
        )
