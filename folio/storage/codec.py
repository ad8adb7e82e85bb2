"""Reading and writing entry folders.

All functions here block; the store calls them through ``asyncio.to_thread``.
Guard marking is the caller's job and must happen before the write starts.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from folio.exceptions import CorruptMetadataError

from .models import Content, ContentBlock, Entry
from .paths import LEGACY_SUFFIXES, split_legacy_name
from .schemas import BLOCK_FILE_RE, StoreSchema

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Timestamps
# ----------------------------------------------------------------------


def iso_from_ms(timestamp_ms: int) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ms_from_iso(value: str) -> Optional[int]:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def timestamp_ms(value: Any) -> Optional[int]:
    """Accept an ISO string or a Unix-ms number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        return ms_from_iso(value)
    return None


def compute_saved_at(metadata: Dict[str, Any], path: Path, fallback_ms: Optional[int] = None) -> int:
    """Prefer ``createdAt``; fall back to the given value, then the mtime."""
    for key in ("createdAt", "timestamp"):
        value = timestamp_ms(metadata.get(key))
        if value is not None:
            return value
    if fallback_ms is not None:
        return fallback_ms
    return int(os.stat(path).st_mtime * 1000)


# ----------------------------------------------------------------------
# Folder entries
# ----------------------------------------------------------------------


def dump_metadata(metadata: Dict[str, Any]) -> str:
    return json.dumps(metadata, indent=2, ensure_ascii=False)


def read_text(path: Path) -> str:
    """Read a UTF-8 file; undecodable bytes raise CorruptMetadataError."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise CorruptMetadataError(path, f"not valid UTF-8 (byte {e.start})") from e


def read_metadata(path: Path) -> Dict[str, Any]:
    """Parse a JSON sidecar.

    Raises:
        FileNotFoundError: If the sidecar does not exist yet
        CorruptMetadataError: If it is not UTF-8 or not a JSON object
    """
    text = read_text(path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptMetadataError(path, str(e)) from e
    if not isinstance(data, dict):
        raise CorruptMetadataError(path, f"expected a JSON object, got {type(data).__name__}")
    return data


def list_block_files(folder: Path) -> List[str]:
    """Block ids present in a folder, sorted."""
    try:
        names = os.listdir(folder)
    except FileNotFoundError:
        return []
    ids = []
    for name in names:
        match = BLOCK_FILE_RE.match(name)
        if match:
            ids.append(match.group(1))
    return sorted(ids)


def content_paths(folder: Path, schema: StoreSchema, content: Content) -> List[Path]:
    """Files a write of ``content`` will touch."""
    if schema.content_mode == "single":
        return [folder / schema.content_filename]
    return [folder / block.filename for block in content]


def entry_files(folder: Path, schema: StoreSchema, content: Optional[Content]) -> List[Path]:
    """Metadata plus content paths, for guard marking."""
    paths = [folder / schema.metadata_filename]
    if content is not None:
        paths.extend(content_paths(folder, schema, content))
    return paths


def write_entry(
    folder: Path,
    schema: StoreSchema,
    metadata: Dict[str, Any],
    content: Optional[Content],
    stale_blocks: Iterable[str] = (),
) -> None:
    """Write the sidecar and, when given, the content.

    Files are overwritten in place. Block ids listed in ``stale_blocks`` have
    their files removed.
    """
    folder.mkdir(parents=True, exist_ok=True)
    (folder / schema.metadata_filename).write_text(dump_metadata(metadata), encoding="utf-8")

    if content is None:
        return

    if schema.content_mode == "single":
        (folder / schema.content_filename).write_text(content, encoding="utf-8")
        return

    for block in content:
        (folder / block.filename).write_text(block.text, encoding="utf-8")
    for block_id in stale_blocks:
        (folder / f"block-{block_id}.md").unlink(missing_ok=True)


def _read_text_or_empty(path: Path) -> str:
    try:
        return read_text(path)
    except FileNotFoundError:
        return ""


def read_blocks(folder: Path, metadata: Dict[str, Any]) -> List[ContentBlock]:
    """Blocks in ``metadata.blocks`` order, then any unlisted files by id."""
    present = list_block_files(folder)
    order = metadata.get("blocks")
    ordered: List[str] = []
    if isinstance(order, list):
        ordered = [block_id for block_id in order if isinstance(block_id, str) and block_id in present]
    ordered.extend(block_id for block_id in present if block_id not in ordered)
    return [ContentBlock(id=block_id, text=_read_text_or_empty(folder / f"block-{block_id}.md")) for block_id in ordered]


def read_entry(folder: Path, schema: StoreSchema, namespace: str) -> Entry:
    """Read one entry folder.

    A folder without a sidecar is not an entry yet and raises
    FileNotFoundError. Missing content reads as empty.
    """
    metadata = read_metadata(folder / schema.metadata_filename)

    content: Content
    if schema.content_mode == "single":
        content = _read_text_or_empty(folder / schema.content_filename)
    else:
        content = read_blocks(folder, metadata)

    return Entry(
        id=folder.name,
        namespace=namespace,
        path=folder,
        metadata=metadata,
        content=content,
        saved_at=compute_saved_at(metadata, folder),
    )


# ----------------------------------------------------------------------
# Legacy flat files
# ----------------------------------------------------------------------


def parse_front_matter(text: str, path: Path) -> Tuple[Dict[str, Any], str]:
    """Split ``---\\n<yaml>\\n---\\n<body>``; text without front matter is all body."""
    if not text.startswith("---"):
        return {}, text

    parts = text.split("---", 2)
    if len(parts) < 3:
        raise CorruptMetadataError(path, "unterminated YAML front matter")

    try:
        metadata = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError as e:
        raise CorruptMetadataError(path, f"invalid YAML front matter: {e}") from e
    if not isinstance(metadata, dict):
        raise CorruptMetadataError(path, "front matter must be a mapping")

    return metadata, parts[2].lstrip("\r\n")


def read_legacy(path: Path, schema: StoreSchema, namespace: str) -> Entry:
    """Read a ``<millis>.md`` or ``<millis>.json`` file."""
    parsed = split_legacy_name(path.name)
    if parsed is None:
        raise ValueError(f"Not a legacy entry file: {path}")
    entry_id, suffix = parsed

    text = read_text(path)
    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptMetadataError(path, str(e)) from e
        if not isinstance(data, dict):
            raise CorruptMetadataError(path, f"expected a JSON object, got {type(data).__name__}")
        body = data.pop("content", "")
        metadata = data
    else:
        metadata, body = parse_front_matter(text, path)

    if not isinstance(body, str):
        body = str(body)

    content: Content = body
    if schema.content_mode == "blocks":
        content = [ContentBlock(id="0001", text=body)] if body else []

    return Entry(
        id=entry_id,
        namespace=namespace,
        path=path,
        metadata=metadata,
        content=content,
        saved_at=compute_saved_at(metadata, path, fallback_ms=int(entry_id)),
        legacy=True,
    )


def find_legacy(folder: Path, entry_id: str) -> Optional[Path]:
    for suffix in LEGACY_SUFFIXES:
        candidate = folder / f"{entry_id}{suffix}"
        if candidate.is_file():
            return candidate
    return None
