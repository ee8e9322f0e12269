"""Engine manifest data model and loading from an engines directory."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

MANIFEST_FILENAME = "engine.yaml"


class ManifestError(Exception):
    """Raised when a manifest cannot be read or decoded."""


class ManifestNotFoundError(ManifestError):
    """Raised when an engine has no manifest."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"engine manifest not found: {detail}")


def _string(value: Any, key: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ManifestError(f"{key}: expected a string, got {type(value).__name__}")


def _optional_string(value: Any, key: str) -> str | None:
    return None if value is None else _string(value, key)


def _required_string(value: Any, key: str) -> str:
    return "" if value is None else _string(value, key)


def _string_list(value: Any, key: str) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ManifestError(f"{key}: expected a list, got {type(value).__name__}")
    return [_string(item, key) for item in value]


def _hex_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ManifestError(f"{key}: expected a hex integer, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 16)
        except ValueError:
            raise ManifestError(f"{key}: invalid hex integer {value!r}") from None
    raise ManifestError(f"{key}: expected a hex integer, got {type(value).__name__}")


def _mapping(data: Any, what: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ManifestError(f"{what}: expected a mapping, got {type(data).__name__}")
    return data


def _check_keys(data: dict, known, what: str) -> None:
    for key in data:
        if key not in known:
            raise ManifestError(f"{what}: field {key} not found")


# yaml key -> (attribute, converter)
_DEVICE_FIELDS: dict[str, tuple[str, Callable[[Any, str], Any]]] = {
    "type": ("type", _required_string),
    "bus": ("bus", _required_string),
    "architecture": ("architecture", _optional_string),
    "manufacturer-id": ("manufacturer_id", _optional_string),
    "flags": ("flags", _string_list),
    "implementer-id": ("implementer_id", _hex_int),
    "part-number": ("part_number", _hex_int),
    "features": ("features", _string_list),
    "vendor-id": ("vendor_id", _hex_int),
    "device-id": ("device_id", _hex_int),
    "vram": ("vram", _optional_string),
    "compute-capability": ("compute_capability", _optional_string),
    "snap-connections": ("snap_connections", _string_list),
    "compatibility-issues": ("compatibility_issues", _string_list),
}

_HEX_KEYS = {"implementer-id", "part-number", "vendor-id", "device-id"}


@dataclass
class Device:
    """A hardware device requirement of an engine."""

    type: str = ""
    bus: str = ""
    architecture: str | None = None
    manufacturer_id: str | None = None
    flags: list[str] | None = None
    implementer_id: int | None = None
    part_number: int | None = None
    features: list[str] | None = None
    vendor_id: int | None = None
    device_id: int | None = None
    vram: str | None = None
    compute_capability: str | None = None
    snap_connections: list[str] | None = None
    compatibility_issues: list[str] | None = None

    @classmethod
    def from_dict(cls, data: Any, strict: bool = False) -> Device:
        data = _mapping(data, "device")
        if strict:
            _check_keys(data, _DEVICE_FIELDS, "device")
        values = {
            attr: convert(data[key], key)
            for key, (attr, convert) in _DEVICE_FIELDS.items()
            if key in data
        }
        return cls(**values)

    def set_fields(self) -> list[str]:
        """Return the manifest keys of the fields that hold a value."""
        return [
            key
            for key, (attr, _) in _DEVICE_FIELDS.items()
            if getattr(self, attr) not in (None, "")
        ]

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key in self.set_fields():
            value = getattr(self, _DEVICE_FIELDS[key][0])
            if key in _HEX_KEYS:
                value = hex(value)
            elif isinstance(value, list):
                value = list(value)
            result[key] = value
        return result


@dataclass
class Devices:
    """Devices an engine needs: all of one list, any of the other."""

    anyof: list[Device] = field(default_factory=list)
    allof: list[Device] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, strict: bool = False) -> Devices:
        data = _mapping(data, "devices")
        if strict:
            _check_keys(data, ("anyof", "allof"), "devices")

        def devices(key: str) -> list[Device]:
            items = data.get(key)
            if items is None:
                return []
            if not isinstance(items, list):
                raise ManifestError(f"{key}: expected a list, got {type(items).__name__}")
            return [Device.from_dict(item, strict) for item in items]

        return cls(anyof=devices("anyof"), allof=devices("allof"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "anyof": [d.to_dict() for d in self.anyof] or None,
            "allof": [d.to_dict() for d in self.allof] or None,
        }


_MANIFEST_KEYS = (
    "name",
    "description",
    "vendor",
    "grade",
    "devices",
    "memory",
    "disk-space",
    "components",
    "configurations",
)


@dataclass
class Manifest:
    """An engine manifest."""

    name: str = ""
    description: str = ""
    vendor: str = ""
    grade: str = ""
    devices: Devices = field(default_factory=Devices)
    memory: str | None = None
    disk_space: str | None = None
    components: list[str] = field(default_factory=list)
    configurations: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, strict: bool = False) -> Manifest:
        data = _mapping(data, "manifest")
        if strict:
            _check_keys(data, _MANIFEST_KEYS, "manifest")
        configurations = _mapping(data.get("configurations"), "configurations")
        return cls(
            name=_required_string(data.get("name"), "name"),
            description=_required_string(data.get("description"), "description"),
            vendor=_required_string(data.get("vendor"), "vendor"),
            grade=_required_string(data.get("grade"), "grade"),
            devices=Devices.from_dict(data.get("devices"), strict),
            memory=_optional_string(data.get("memory"), "memory"),
            disk_space=_optional_string(data.get("disk-space"), "disk-space"),
            components=_string_list(data.get("components"), "components") or [],
            configurations={str(k): v for k, v in configurations.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "vendor": self.vendor,
            "grade": self.grade,
            "devices": self.devices.to_dict(),
            "memory": self.memory,
            "disk-space": self.disk_space,
            "components": list(self.components) or None,
            "configurations": dict(self.configurations) or None,
        }


@dataclass
class ScoredManifest(Manifest):
    """A manifest with its compatibility score for a machine."""

    score: int = 0
    compatible: bool = False
    compatibility_issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["score"] = self.score
        result["compatible"] = self.compatible
        if self.compatibility_issues:
            result["compatibility-issues"] = list(self.compatibility_issues)
        return result


def parse_manifest(text: str | bytes, strict: bool = False) -> Manifest:
    """Decode a manifest from YAML text; strict rejects unknown fields."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ManifestError(str(exc)) from exc
    return Manifest.from_dict(data, strict)


def load_manifests(manifests_dir: str | os.PathLike) -> list[Manifest]:
    """Load the manifest of every engine directory, in name order."""
    base = Path(manifests_dir)
    try:
        entries = sorted(base.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise ManifestError(f"{manifests_dir}: {exc}") from exc

    manifests = []
    for entry in entries:
        if not entry.is_dir():
            continue
        file_name = entry / MANIFEST_FILENAME
        try:
            data = file_name.read_bytes()
        except OSError as exc:
            raise ManifestError(f"{file_name}: {exc}") from exc
        try:
            manifests.append(parse_manifest(data))
        except ManifestError as exc:
            raise ManifestError(f"{manifests_dir}: {exc}") from exc
    return manifests


def load_manifest(manifests_dir: str | os.PathLike, engine_name: str) -> Manifest:
    """Load the manifest of one engine."""
    file_name = Path(manifests_dir) / engine_name / MANIFEST_FILENAME
    try:
        data = file_name.read_bytes()
    except FileNotFoundError as exc:
        raise ManifestNotFoundError(str(exc)) from exc
    except OSError as exc:
        raise ManifestError(f"{file_name}: {exc}") from exc
    try:
        return parse_manifest(data)
    except ManifestError as exc:
        raise ManifestError(f"{manifests_dir}: {exc}") from exc