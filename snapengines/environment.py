"""Engine runtime environment, engine configurations and server endpoints."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any

import yaml

from .context import ConfigLayer, Context
from .manifest import Manifest, ManifestError, ManifestNotFoundError, load_manifest

OPENAI_ENDPOINT_KEY = "openai"

_COMPONENT_ENV = "COMPONENT"
_COMPONENT_FILE = "component.yaml"
_CONF_HTTP_PORT = "http.port"
_ENV_OPENAI_BASE_PATH = "OPENAI_BASE_PATH"

_VAR_RE = re.compile(r"\$(?:\{([^}]*)\}|([A-Za-z0-9_]+))")


class EngineEnvironmentError(Exception):
    """Raised when the engine environment or configuration cannot be set up."""


def _expand(value: str) -> str:
    """Replace $VAR and ${VAR} with environment values; unset ones become ''."""

    def replace(match: re.Match) -> str:
        name = match.group(1) if match.group(1) is not None else match.group(2)
        return os.environ.get(name, "")

    return _VAR_RE.sub(replace, value)


def component_environment(component_path: str | os.PathLike) -> list[tuple[str, str]]:
    """Read the unexpanded environment entries a component declares."""
    yaml_file = Path(component_path) / _COMPONENT_FILE
    try:
        text = yaml_file.read_text()
    except OSError as exc:
        raise EngineEnvironmentError(f"error reading {yaml_file}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise EngineEnvironmentError(f"error unmarshaling {yaml_file}: {exc}") from exc

    if data is None:
        return []
    if not isinstance(data, dict):
        raise EngineEnvironmentError(f"error unmarshaling {yaml_file}: expected a mapping")
    entries = data.get("environment") or []
    if not isinstance(entries, list):
        raise EngineEnvironmentError(f"error unmarshaling {yaml_file}: environment must be a list")

    result = []
    for entry in entries:
        key, sep, value = str(entry).partition("=")
        if not sep:
            raise EngineEnvironmentError(f'invalid env var "{entry}"')
        result.append((key, value))
    return result


def load_engine_environment(ctx: Context) -> dict[str, str]:
    """Export the environment of the active engine's components; return what was set."""
    active_engine = ctx.cache.get_active_engine()
    if not active_engine:
        raise EngineEnvironmentError("no active engine")

    try:
        manifest = load_manifest(ctx.engines_dir, active_engine)
    except ManifestError as exc:
        raise EngineEnvironmentError(f"error loading engine manifest: {exc}") from exc

    components_dir = os.environ.get("SNAP_COMPONENTS")
    if components_dir is None:
        raise EngineEnvironmentError("SNAP_COMPONENTS env var not set")

    exported: dict[str, str] = {}
    for component in manifest.components:
        component_path = Path(components_dir) / component
        for key, value in component_environment(component_path):
            os.environ[_COMPONENT_ENV] = str(component_path)
            try:
                value = _expand(value)
            finally:
                os.environ.pop(_COMPONENT_ENV, None)
            os.environ[key] = value
            exported[key] = value
    return exported


def set_engine_config(engine: Manifest, ctx: Context) -> None:
    """Store the engine's configurations; earlier ones are not removed."""
    for key, value in engine.configurations.items():
        try:
            ctx.config.set_document(key, value, ConfigLayer.ENGINE)
        except Exception as exc:
            raise EngineEnvironmentError(
                f'error setting engine configuration "{key}": {exc}'
            ) from exc


def unset_engine_config(engine_name: str, unset_user_overrides: bool, ctx: Context) -> None:
    """Remove all engine configurations, and optionally the user's overrides of them."""
    try:
        ctx.config.unset(".", ConfigLayer.ENGINE)
    except Exception as exc:
        raise EngineEnvironmentError(f"error un-setting engine configurations: {exc}") from exc

    if not unset_user_overrides:
        return

    try:
        engine = load_manifest(ctx.engines_dir, engine_name)
    except ManifestNotFoundError:
        print(
            f'Warning: previously active engine "{engine_name}" not found; '
            "skipping user configuration cleanup.",
            file=sys.stderr,
        )
        return
    except ManifestError as exc:
        raise EngineEnvironmentError(f"error loading engine manifest: {exc}") from exc

    for key in engine.configurations:
        try:
            ctx.config.unset(key, ConfigLayer.USER)
        except Exception as exc:
            raise EngineEnvironmentError(f'error un-setting configuration "{key}": {exc}') from exc


def server_api_urls(ctx: Context) -> dict[str, str]:
    """Return the server's API endpoints keyed by API name."""
    try:
        load_engine_environment(ctx)
    except EngineEnvironmentError as exc:
        raise EngineEnvironmentError(f"error loading engine environment: {exc}") from exc

    base_path = os.environ.get(_ENV_OPENAI_BASE_PATH)
    if base_path is None:
        raise EngineEnvironmentError(f'"{_ENV_OPENAI_BASE_PATH}" env var is not set')

    try:
        port_values: dict[str, Any] = ctx.config.get(_CONF_HTTP_PORT)
    except Exception as exc:
        raise EngineEnvironmentError(f'error getting "{_CONF_HTTP_PORT}": {exc}') from exc
    port = port_values.get(_CONF_HTTP_PORT)

    if base_path and not base_path.startswith("/"):
        base_path = "/" + base_path
    return {OPENAI_ENDPOINT_KEY: f"http://localhost:{port}{base_path}"}