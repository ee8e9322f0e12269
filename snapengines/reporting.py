"""Text reports for engines, versions and cache pruning."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable, Mapping

import yaml

from .manifest import Manifest, ScoredManifest

_TABLE_MAX_WIDTH = 80
_TABLE_HEADER = ("engine", "vendor", "description", "compat")


def sort_engines(engines: Iterable[ScoredManifest]) -> list[ScoredManifest]:
    """Order engines by descending score; with equal scores, stable ones first."""
    return sorted(engines, key=lambda e: (-e.score, e.grade != "stable"))


def compatibility_label(engine: ScoredManifest) -> str:
    """Return 'yes', 'devel' or 'no' for the compatibility column."""
    if engine.compatible and engine.grade == "stable":
        return "yes"
    if engine.compatible:
        return "devel"
    return "no"


def engines_json(active_engine: str, engines: Iterable[ScoredManifest]) -> str:
    """Render the engine list and active engine as indented JSON."""
    document = {
        "active-engine": active_engine,
        "engines": [engine.to_dict() for engine in engines],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    if width <= 1:
        return text[:width]
    return text[: width - 1] + "…"


def engines_table(active_engine: str, engines: Iterable[ScoredManifest]) -> str:
    """Render engines as an 80-column table; '' when there are no engines.

    The active engine is marked with a trailing '*'.
    """
    rows = []
    for engine in sort_engines(engines):
        name = engine.name + "*" if engine.name == active_engine else engine.name
        rows.append((name, engine.vendor, engine.description, compatibility_label(engine)))
    if not rows:
        return ""

    name_width = max(len(row[0]) for row in (_TABLE_HEADER, *rows))
    vendor_width = max(len(row[1]) for row in (_TABLE_HEADER, *rows))
    # Column widths including padding, as laid out for the table.
    padded_name = name_width + 1
    padded_vendor = vendor_width + 2
    padded_description = _TABLE_MAX_WIDTH - (padded_name + padded_vendor)
    padded_description -= len(_TABLE_HEADER[3]) + 1
    description_width = max(padded_description - 2, 1)

    lines = []
    for name, vendor, description, compat in (_TABLE_HEADER, *rows):
        description = _truncate(description, description_width)
        line = (
            f"{name:<{name_width}} "
            f" {vendor:<{vendor_width}} "
            f" {description:<{description_width}} "
            f"{compat}"
        )
        lines.append(line.rstrip())
    return "\n".join(lines) + "\n"


def _yaml_document(engine: ScoredManifest) -> dict[str, Any]:
    document = engine.to_dict()
    for key in ("memory", "disk-space"):
        if document.get(key) is None:
            document.pop(key, None)
    devices = {k: v for k, v in document["devices"].items() if v is not None}
    document["devices"] = devices
    if document.get("components") is None:
        document["components"] = []
    if document.get("configurations") is None:
        document["configurations"] = {}
    return document


def format_engine(engine: ScoredManifest, output_format: str) -> str:
    """Render one engine as JSON or YAML ('' means YAML)."""
    if output_format == "json":
        return json.dumps(engine.to_dict(), indent=2, ensure_ascii=False) + "\n"
    if output_format in ("yaml", ""):
        return yaml.safe_dump(_yaml_document(engine), sort_keys=False, allow_unicode=True)
    raise ValueError(f'unknown format "{output_format}"')


def clean_version_string(version: str) -> str:
    """Return the version, or 'unset' when it is empty."""
    return version if version else "unset"


def version_data(snap_version: str, cli_version: str) -> dict[str, str]:
    """Collect the snap and CLI versions for display."""
    return {
        "snap": clean_version_string(snap_version),
        "cli": clean_version_string(cli_version),
    }


def format_version(data: Mapping[str, str], output_format: str) -> str:
    """Render version data as JSON or YAML."""
    if output_format == "json":
        return json.dumps(dict(data), indent=2) + "\n"
    if output_format == "yaml":
        return yaml.safe_dump(dict(data), sort_keys=False)
    raise ValueError(f'unknown format "{output_format}"')


def removable_components(
    engines_to_check: Iterable[Manifest],
    active_manifest: Manifest,
    installed: Callable[[str], bool],
) -> dict[str, list[str]]:
    """Map each installed component not used by the active engine to the engines using it."""
    active_components = set(active_manifest.components)
    result: dict[str, list[str]] = {}
    for engine in engines_to_check:
        if engine.name == active_manifest.name:
            continue
        for component in engine.components:
            if component in active_components:
                continue
            if installed(component):
                result.setdefault(component, []).append(engine.name)
    return result


def inactive_engines(manifests: Iterable[Manifest], active_engine: str) -> list[str]:
    """Names of all engines except the active one."""
    return [m.name for m in manifests if m.name != active_engine]


def _format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "kB", "MB", "GB", "TB"):
        if value < 1000 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1000
    return f"{value:.1f} TB"


def format_components(
    components_with_engines: Mapping[str, list[str]],
    sizes: Mapping[str, int] | None,
    single_engine: bool,
) -> str:
    """Describe the components to be removed, with sizes where known."""
    if not components_with_engines:
        return "No components to remove.\n"
    sizes = sizes or {}
    lines = ["Removing components:"]
    for component, engine_names in components_with_engines.items():
        entry = component
        if component in sizes:
            entry += f" ({_format_bytes(sizes[component])})"
        if single_engine:
            lines.append(f"- {entry}")
        else:
            lines.append(f"- {entry} [{', '.join(engine_names)}]")
    return "\n".join(lines) + "\n"