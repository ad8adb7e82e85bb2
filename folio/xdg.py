"""XDG Base Directory utilities for config and state file management."""

import os
from pathlib import Path


def get_xdg_config_path(filename: str, legacy_dir: bool = True) -> Path:
    """Get XDG-compliant config file path.

    Checks locations in order of precedence:
    1. ~/.folio/{filename} (if legacy_dir is True)
    2. $XDG_CONFIG_HOME/folio/{filename} (if XDG_CONFIG_HOME is set)
    3. ~/.config/folio/{filename} (XDG default)

    Returns the first existing file, or the preferred location for new files.

    Args:
        filename: Name of the config file (e.g., "config.yaml")
        legacy_dir: Whether to check ~/.folio first

    Returns:
        Path to config file
    """
    if legacy_dir:
        home_path = Path.home() / ".folio" / filename
        if home_path.exists():
            return home_path

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        xdg_path = Path(xdg_config) / "folio" / filename
        if xdg_path.exists():
            return xdg_path

    default_path = Path.home() / ".config" / "folio" / filename
    if default_path.exists():
        return default_path

    if xdg_config:
        return Path(xdg_config) / "folio" / filename
    return default_path


def get_xdg_write_path(filename: str, legacy_dir: bool = True) -> Path:
    """Get config path for writing operations.

    Respects an existing ~/.folio/{filename}; otherwise uses the XDG location.
    """
    if legacy_dir:
        home_path = Path.home() / ".folio" / filename
        if home_path.exists():
            return home_path

    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config) / "folio" / filename


def get_xdg_state_path(subdir: str = "") -> Path:
    """Get XDG-compliant state directory path.

    - $XDG_STATE_HOME/folio/{subdir} (if XDG_STATE_HOME is set)
    - ~/.local/state/folio/{subdir} (XDG default)

    Args:
        subdir: Optional subdirectory within folio state

    Returns:
        Path to state directory
    """
    xdg_state = os.environ.get("XDG_STATE_HOME", str(Path.home() / ".local" / "state"))
    state_path = Path(xdg_state) / "folio"
    if subdir:
        state_path = state_path / subdir
    return state_path
