"""Validation of engine manifests and their device requirements."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Iterable

from . import constants
from .manifest import MANIFEST_FILENAME, Device, Devices, Manifest, ManifestError, parse_manifest


class ValidationError(Exception):
    """Raised when a manifest is not valid."""


_PCI_FIELDS = ("type", "bus", "vendor-id", "device-id", "snap-connections")
_GPU_EXTRA_FIELDS = ("vram", "compute-capability")
_AMD64_FIELDS = ("type", "architecture", "manufacturer-id", "flags")
_ARM64_FIELDS = ("type", "architecture", "implementer-id", "part-number", "features")

_SIZE_UNITS = {
    "": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
    "P": 1024**5,
}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGTP]?)(?:I?B)?\s*$", re.IGNORECASE)


def parse_size(text: str) -> int:
    """Convert a size such as '512M' or '1G' to a number of bytes."""
    match = _SIZE_RE.match(text)
    if match is None:
        raise ValueError(f"invalid size: {text!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit.upper()])


def is_primitive(value: Any) -> bool:
    """True for booleans, numbers and strings."""
    return isinstance(value, (bool, int, float, str))


def _check_allowed(device: Device, allowed: Iterable[str], what: str) -> None:
    allowed = set(allowed)
    for key in device.set_fields():
        if key not in allowed:
            raise ValidationError(f"{what}: invalid field: {key}")


def validate_bus(device: Device, extra_fields: Iterable[str] | None = None) -> None:
    """Check a device's fields against what its bus allows."""
    if device.bus in ("pci", ""):
        _check_allowed(device, (*_PCI_FIELDS, *(extra_fields or ())), "pci device")
    elif device.bus == "usb":
        raise ValidationError("usb bus is not supported")
    else:
        raise ValidationError(f"invalid bus: {device.bus}")


def validate_cpu(device: Device) -> None:
    """Check a CPU device against the fields its architecture allows."""
    if device.architecture is None:
        raise ValidationError("architecture field required")
    if device.architecture == constants.AMD64:
        _check_allowed(device, _AMD64_FIELDS, "cpu amd64")
    elif device.architecture == constants.ARM64:
        _check_allowed(device, _ARM64_FIELDS, "cpu arm64")
    else:
        raise ValidationError(f"invalid architecture: {device.architecture}")


def validate_device(device: Device) -> None:
    """Validate one device according to its type."""
    try:
        if device.type == "cpu":
            validate_cpu(device)
        elif device.type == "gpu":
            try:
                validate_bus(device, _GPU_EXTRA_FIELDS)
            except ValidationError as exc:
                raise ValidationError(f"gpu: {exc}") from exc
        elif device.type == "npu":
            try:
                validate_bus(device)
            except ValidationError as exc:
                raise ValidationError(f"npu: {exc}") from exc
        elif device.type == "":
            try:
                validate_bus(device)
            except ValidationError as exc:
                raise ValidationError(f"typeless device: {exc}") from exc
        else:
            raise ValidationError(f"invalid device type: {device.type}")
    except ValidationError as exc:
        if device.type in ("cpu", "gpu", "npu"):
            raise ValidationError(f"{device.type}: {exc}") from exc
        if device.type == "":
            raise ValidationError(f"typeless: {exc}") from exc
        raise


def validate_devices(devices: Devices) -> None:
    """Validate the all-of devices, then the any-of devices."""
    for label, group in (("allof", devices.allof), ("anyof", devices.anyof)):
        for number, device in enumerate(group, start=1):
            try:
                validate_device(device)
            except ValidationError as exc:
                raise ValidationError(
                    f"invalid device: {label} {number}/{len(group)}: {exc}"
                ) from exc


def validate_manifest(manifest: Manifest, expected_engine_name: str = "") -> None:
    """Check required fields, sizes, configurations and devices."""
    if not manifest.name:
        raise ValidationError("required field is not set: name")
    if expected_engine_name and manifest.name != expected_engine_name:
        raise ValidationError(
            "engine directory name should match name in manifest: "
            f"{expected_engine_name} != {manifest.name}"
        )
    if not manifest.description:
        raise ValidationError("required field is not set: description")
    if not manifest.vendor:
        raise ValidationError("required field is not set: vendor")
    if not manifest.grade:
        raise ValidationError("required field is not set: grade")
    if manifest.grade not in ("stable", "devel"):
        raise ValidationError("grade should be 'stable' or 'devel'")

    for label, value in (("memory", manifest.memory), ("disk space", manifest.disk_space)):
        if value is not None:
            try:
                parse_size(value)
            except ValueError as exc:
                raise ValidationError(f"error parsing {label}: {exc}") from exc

    for key, value in manifest.configurations.items():
        if not is_primitive(value):
            raise ValidationError(
                f"configuration field {key} is not a primitive value: {value}"
            )

    validate_devices(manifest.devices)


def validate_manifest_yaml(expected_name: str, yaml_data: str | bytes) -> None:
    """Decode manifest YAML strictly and validate it."""
    yaml_data = yaml_data.strip()
    if not yaml_data:
        raise ValidationError("empty yaml data")
    try:
        manifest = parse_manifest(yaml_data, strict=True)
    except ManifestError as exc:
        raise ValidationError(f"error decoding: {exc}") from exc
    validate_manifest(manifest, expected_name)


def engine_name_from_path(manifest_file_path: str | os.PathLike) -> str:
    """Return the directory name holding the manifest, or '' if there is none."""
    path = Path(manifest_file_path)
    parts = [part for part in path.parts if part != path.anchor]
    if len(parts) < 2:
        return ""
    return parts[-2]


def validate(manifest_file_path: str | os.PathLike) -> None:
    """Validate a manifest file on disk."""
    path_text = os.fspath(manifest_file_path)
    if not path_text.endswith(MANIFEST_FILENAME):
        raise ValidationError(
            f"manifest file must be called {MANIFEST_FILENAME}: {path_text}"
        )
    try:
        os.stat(path_text)
    except FileNotFoundError:
        raise ValidationError(f"manifest file does not exist: {path_text}") from None
    except OSError as exc:
        raise ValidationError(f"error getting file info: {exc}") from exc
    try:
        data = Path(path_text).read_bytes()
    except OSError as exc:
        raise ValidationError(f"error reading file: {exc}") from exc
    validate_manifest_yaml(engine_name_from_path(path_text), data)