"""Folio configuration management."""

import logging
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .xdg import get_xdg_config_path, get_xdg_state_path, get_xdg_write_path

logger = logging.getLogger(__name__)

StoreName = Literal["writings", "personality", "output"]

DEFAULT_DEBOUNCE_MS = 300
DEFAULT_WRITE_GUARD_MS = 2000


def _get_default_state_dir() -> Path:
    return get_xdg_state_path()


class FolioConfig(BaseModel):
    """Folio configuration.

    Timing values are milliseconds to match the on-disk metadata timestamps.
    """

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
    )

    debounce_ms: int = Field(default=DEFAULT_DEBOUNCE_MS, ge=0)
    write_guard_ms: int = Field(default=DEFAULT_WRITE_GUARD_MS, ge=0)
    save_delay_ms: int = Field(default=DEFAULT_DEBOUNCE_MS, ge=0)
    force_polling: bool = False
    poll_delay_ms: int = Field(default=300, ge=10)
    log_level: str = "warning"
    stores: List[StoreName] = Field(default_factory=lambda: ["writings", "personality", "output"])
    workspace: Optional[Path] = None
    state_dir: Path = Field(default_factory=_get_default_state_dir)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"Unknown log level '{value}'")
        return value.lower()

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def write_guard_seconds(self) -> float:
        return self.write_guard_ms / 1000

    @property
    def save_delay_seconds(self) -> float:
        return self.save_delay_ms / 1000


def get_config_path() -> Path:
    return get_xdg_config_path("config.yaml")


def load_config(path: Optional[Path] = None) -> FolioConfig:
    """Load Folio configuration from a YAML file.

    Args:
        path: Path to config.yaml. If None, uses the default XDG location

    Returns:
        FolioConfig with loaded settings. Returns the default config if the file
        doesn't exist or cannot be parsed.
    """
    if path is None:
        path = get_config_path()

    if not path.exists():
        return FolioConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return FolioConfig()

    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: expected a mapping, got %s", path, type(data).__name__)
        return FolioConfig()

    for key in ("workspace", "state_dir"):
        if data.get(key):
            data[key] = Path(data[key]).expanduser()

    try:
        return FolioConfig.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid config at %s, using defaults: %s", path, e)
        return FolioConfig()


def save_config(config: FolioConfig, path: Optional[Path] = None) -> Path:
    """Save Folio configuration to a YAML file.

    Args:
        config: FolioConfig instance to save
        path: Path to save config. If None, uses the default XDG location

    Returns:
        Path where config was saved
    """
    if path is None:
        path = get_xdg_write_path("config.yaml")

    path.parent.mkdir(parents=True, exist_ok=True)

    # mode="json" ensures Path objects become strings
    config_data = config.model_dump(exclude_none=True, mode="json")

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)

    return path
