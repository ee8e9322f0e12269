"""Reading and writing configuration values on behalf of the user."""

from __future__ import annotations

from typing import Any, Mapping

import yaml

from .context import ConfigLayer

# Configuration keys that are still consumed by engines but no longer
# meant to be seen or changed by the user.
DEPRECATED_CONFIG = (
    "model",
    "model-name",
    "multimodel-projector",
    "server",
    "target-device",
    "http.base-path",
)


class SettingsError(Exception):
    """Raised when a configuration value cannot be read or written."""


def _scalar_text(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _dump(values: Mapping[str, Any], what: str) -> str:
    try:
        return yaml.safe_dump(dict(values), default_flow_style=False, allow_unicode=True)
    except yaml.YAMLError as exc:
        raise SettingsError(f"error serializing {what}: {exc}") from exc


def split_key_value(key_value: str) -> tuple[str, str]:
    """Split 'key=value' on the first '='; the value may itself contain '='."""
    if key_value.startswith("="):
        raise SettingsError("key must not start with an equal sign")
    key, sep, value = key_value.partition("=")
    if not sep:
        raise SettingsError(f'expected key=value, got "{key_value}"')
    return key, value


def get_value(config: Any, key: str) -> str:
    """Return the printable value of a key: plain for one value, YAML for several."""
    try:
        values = config.get(key)
    except Exception as exc:
        raise SettingsError(f'error getting value of "{key}": {exc}') from exc
    if not values:
        raise SettingsError(f'no value set for key "{key}"')
    if len(values) == 1:
        return _scalar_text(values.get(key)) + "\n"
    return _dump(values, "value")


def get_values(config: Any) -> str:
    """Return all non-deprecated configurations as YAML."""
    try:
        values = config.get_all()
    except Exception as exc:
        raise SettingsError(f"error getting values: {exc}") from exc
    visible = {k: v for k, v in (values or {}).items() if k not in DEPRECATED_CONFIG}
    return _dump(visible, "values")


def set_value(config: Any, key_value: str, layer: ConfigLayer = ConfigLayer.USER) -> tuple[str, str]:
    """Store a 'key=value' pair in the given layer and return the key and value."""
    key, value = split_key_value(key_value)
    if layer is ConfigLayer.USER and key in DEPRECATED_CONFIG:
        raise SettingsError(f'"{key}" is read-only')
    try:
        config.set(key, value, layer)
    except Exception as exc:
        raise SettingsError(f'error setting value "{value}" for "{key}": {exc}') from exc
    return key, value