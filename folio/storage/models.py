"""Data models for stored entries."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

BLOCK_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

RefKind = Literal["entry", "legacy", "section-config"]


class ContentBlock(BaseModel):
    """One block of multi-file content, stored as ``block-<id>.md``."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str = ""

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not BLOCK_ID_RE.match(value):
            raise ValueError(f"block id '{value}' may only contain letters, digits, '-' and '_'")
        return value

    @property
    def filename(self) -> str:
        return f"block-{self.id}.md"


Content = Union[str, List[ContentBlock]]


class SectionConfig(BaseModel):
    """Namespace-level default settings.

    Consulted when an entry is created without explicit provider/model
    settings. Unknown keys are preserved so external editors can add fields.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens", ge=1)
    reasoning: Optional[bool] = None

    def to_metadata(self) -> Dict[str, Any]:
        """Return the settings as camelCase metadata keys, omitting unset values."""
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass
class Entry:
    """One persisted content unit."""

    id: str
    namespace: str
    path: Path
    metadata: Dict[str, Any]
    content: Content
    saved_at: int
    legacy: bool = False

    @property
    def title(self) -> Optional[str]:
        return self.metadata.get("title")

    def to_dict(self) -> Dict[str, Any]:
        content: Any = self.content
        if isinstance(content, list):
            content = [block.model_dump() for block in content]
        return {
            "id": self.id,
            "namespace": self.namespace,
            "path": str(self.path),
            "metadata": self.metadata,
            "content": content,
            "savedAt": self.saved_at,
        }


@dataclass(frozen=True)
class EntryRef:
    """Result of decoding an on-disk path back to a store location."""

    namespace: str
    entry_id: Optional[str]
    kind: RefKind = "entry"


@dataclass(frozen=True)
class WriteResult:
    """Returned by create and save."""

    id: str
    path: Path
    saved_at: int


@dataclass
class LoadError:
    """An entry skipped during a batch load."""

    path: Path
    message: str
    namespace: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
