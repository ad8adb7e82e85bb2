"""Store schemas: the per-variant settings of the generic entry store.

The writing, personality and output stores differ only in where they live,
which namespaces they accept, how content is laid out and which metadata
fields are validated. Those differences are captured here so a single
EntryStore implementation serves all three.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import ValidationError

from folio.exceptions import InvalidArgumentError

from .models import Content, ContentBlock

METADATA_FILENAME = "config.json"
BLOCK_FILE_RE = re.compile(r"^block-([A-Za-z0-9_-]{1,64})\.md$")
NAMESPACE_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")

# Metadata keys that fall back to the namespace SectionConfig on create
SETTINGS_FIELDS = ("provider", "model", "temperature", "maxTokens", "reasoning")

# Managed by the store; callers cannot set them
MANAGED_FIELDS = ("createdAt", "updatedAt", "blocks")


@dataclass(frozen=True)
class StoreSchema:
    """Describes one content store variant.

    Attributes:
        name: Store name, used in events and logs
        subdir: Store root relative to the workspace ("" for the workspace itself)
        namespaces: Fixed namespace allow-list, or None to accept any safe name
        content_mode: "single" (one body file) or "blocks" (one file per block)
        content_filename: Body file name for single-file content
        required_fields: Metadata fields that must be non-empty strings on create
        enum_fields: Metadata fields restricted to an allow-list
        defaults: Metadata defaults applied on create
        namespace_field: Metadata key recording the namespace (optional)
        legacy_files: Whether to read flat ``<millis>.md`` files
        section_config: Whether namespaces carry a SectionConfig sidecar
    """

    name: str
    subdir: str = ""
    namespaces: Optional[Tuple[str, ...]] = None
    content_mode: Literal["single", "blocks"] = "single"
    content_filename: str = "content.md"
    required_fields: Tuple[str, ...] = ()
    enum_fields: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    namespace_field: Optional[str] = None
    legacy_files: bool = False
    section_config: bool = False

    metadata_filename: str = METADATA_FILENAME

    def store_root(self, workspace: Path) -> Path:
        """Directory holding this store's namespaces inside a workspace."""
        return Path(workspace) / self.subdir if self.subdir else Path(workspace)

    # ------------------------------------------------------------------
    # Name recognition
    # ------------------------------------------------------------------

    def is_namespace(self, name: str) -> bool:
        if self.namespaces is not None:
            return name in self.namespaces
        return bool(NAMESPACE_RE.match(name))

    def is_block_file(self, name: str) -> bool:
        return self.content_mode == "blocks" and BLOCK_FILE_RE.match(name) is not None

    def is_entry_file(self, name: str) -> bool:
        """True for the fixed file names that live inside an entry folder."""
        if name == self.metadata_filename:
            return True
        if self.content_mode == "single":
            return name == self.content_filename
        return self.is_block_file(name)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_namespace(self, namespace: str) -> None:
        if not isinstance(namespace, str) or not self.is_namespace(namespace):
            if self.namespaces is not None:
                raise InvalidArgumentError.for_enum("namespace", namespace, self.namespaces)
            raise InvalidArgumentError(
                f'Invalid namespace "{namespace}". Use letters, digits, "-" or "_" (max 64 characters).',
                field="namespace",
            )

    def validate_fields(self, fields: Mapping[str, Any], creating: bool) -> None:
        """Check required and enum-typed metadata fields.

        On create every required field must be present; on update only the
        supplied ones are checked.
        """
        for name in self.required_fields:
            if name not in fields and not creating:
                continue
            value = fields.get(name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidArgumentError(f"{name.capitalize()} must be a non-empty string.", field=name)

        for name, allowed in self.enum_fields.items():
            if name in fields and fields[name] not in allowed:
                raise InvalidArgumentError.for_enum(name, fields[name], allowed)

        if "tags" in fields and not (
            isinstance(fields["tags"], list) and all(isinstance(tag, str) for tag in fields["tags"])
        ):
            raise InvalidArgumentError("Tags must be a list of strings.", field="tags")

    def normalize_content(self, content: Any) -> Content:
        """Coerce caller content into the layout this store writes."""
        if self.content_mode == "single":
            if content is None:
                return ""
            if not isinstance(content, str):
                raise InvalidArgumentError("Content must be a string for this store.", field="content")
            return content

        if content is None:
            return []
        if isinstance(content, str):
            return [ContentBlock(id="0001", text=content)]
        if not isinstance(content, list):
            raise InvalidArgumentError("Content must be a string or a list of blocks.", field="content")

        try:
            blocks = [ContentBlock.model_validate(item) for item in content]
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid content block: {e.errors()[0]['msg']}", field="content") from e

        ids = [block.id for block in blocks]
        if len(set(ids)) != len(ids):
            raise InvalidArgumentError("Content block ids must be unique.", field="content")
        return blocks

    def clean_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Drop store-managed keys and trim string fields that are required."""
        cleaned = {k: v for k, v in fields.items() if k not in MANAGED_FIELDS}
        for name in self.required_fields:
            if isinstance(cleaned.get(name), str):
                cleaned[name] = cleaned[name].strip()
        return cleaned

    def build_metadata(
        self,
        namespace: str,
        fields: Mapping[str, Any],
        section_defaults: Optional[Mapping[str, Any]],
        now_iso: str,
    ) -> Dict[str, Any]:
        """Assemble metadata for a new entry.

        Precedence: explicit fields > namespace SectionConfig > schema defaults.
        """
        metadata: Dict[str, Any] = {}
        for key, value in self.defaults.items():
            metadata[key] = list(value) if isinstance(value, list) else value
        if section_defaults:
            for key in SETTINGS_FIELDS:
                if key in section_defaults:
                    metadata[key] = section_defaults[key]
        metadata.update(self.clean_fields(fields))
        if self.namespace_field:
            metadata[self.namespace_field] = namespace
        metadata["createdAt"] = now_iso
        metadata["updatedAt"] = now_iso
        return metadata


WRITING_ITEM_STATUSES = ("draft", "in-progress", "complete", "archived")
OUTPUT_TYPES = ("posts", "writings")

OUTPUT_DEFAULTS = {
    "category": "",
    "tags": [],
    "visibility": "private",
    "provider": "openai",
    "model": "gpt-4o",
    "temperature": 0.7,
    "maxTokens": 2048,
    "reasoning": False,
}

WRITINGS = StoreSchema(
    name="writings",
    subdir="",
    namespaces=("writings",),
    content_mode="single",
    content_filename="content.md",
    required_fields=("title",),
    enum_fields={"status": WRITING_ITEM_STATUSES},
    defaults={"status": "draft", "category": "", "tags": []},
)

PERSONALITY = StoreSchema(
    name="personality",
    subdir="brain",
    namespaces=None,
    content_mode="blocks",
    defaults={"tags": []},
    namespace_field="sectionId",
    legacy_files=True,
    section_config=True,
)

OUTPUT = StoreSchema(
    name="output",
    subdir="output",
    namespaces=OUTPUT_TYPES,
    content_mode="single",
    content_filename="DATA.md",
    required_fields=("title",),
    defaults=OUTPUT_DEFAULTS,
    namespace_field="type",
    section_config=True,
)

SCHEMAS: Dict[str, StoreSchema] = {schema.name: schema for schema in (WRITINGS, PERSONALITY, OUTPUT)}


def get_schema(name: str) -> StoreSchema:
    """Look up a built-in schema by store name."""
    try:
        return SCHEMAS[name]
    except KeyError:
        raise InvalidArgumentError.for_enum("store", name, list(SCHEMAS)) from None


def list_schemas() -> List[str]:
    return list(SCHEMAS)
