"""Shared command context, configuration layers and component lookup."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .suggestions import instance_name


class ConfigLayer(enum.Enum):
    """The layer a configuration value is stored in."""

    PACKAGE = "package"
    ENGINE = "engine"
    USER = "user"


class PermissionDeniedError(PermissionError):
    """Raised when a command needs root privileges."""

    def __init__(self, message: str = "permission denied, try again with sudo") -> None:
        super().__init__(message)


@dataclass
class Context:
    """State shared by all commands.

    ``cache`` provides get_active_engine(), set_active_engine(name) and
    get_machine_info(); ``config`` provides get(key), get_all(),
    set(key, value, layer), set_document(key, value, layer) and
    unset(key, layer).
    """

    engines_dir: str = ""
    verbose: bool = False
    cache: Any = None
    config: Any = None


def component_directory(component: str) -> Path:
    """Return the directory where a snap component of this revision is mounted."""
    revision = os.environ.get("SNAP_REVISION", "")
    return Path("/snap") / instance_name() / "components" / revision / component


def component_installed(component: str) -> bool:
    """Report whether a snap component is mounted."""
    path = component_directory(component)
    try:
        is_dir = path.is_dir()
        exists = is_dir or path.exists()
    except OSError as exc:
        raise OSError(f'error checking component directory "{component}": {exc}') from exc
    if not exists:
        return False
    if not is_dir:
        raise NotADirectoryError(f'component "{component}" exists but is not a directory')
    return True