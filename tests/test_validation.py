import pytest
import yaml

from snapengines import constants
from snapengines.manifest import MANIFEST_FILENAME, Device, Devices, Manifest
from snapengines.validation import (
    ValidationError,
    engine_name_from_path,
    is_primitive,
    parse_size,
    validate,
    validate_bus,
    validate_cpu,
    validate_device,
    validate_devices,
    validate_manifest,
    validate_manifest_yaml,
)


def template_manifest():
    return Manifest(
        name="test",
        description="test",
        vendor="test",
        grade="stable",
        devices=Devices(),
        memory="1",
        disk_space="1",
        components=[],
        configurations={"engine": "test", "model": "test"},
    )


# Bus


@pytest.mark.parametrize("bus", ["pci", ""])
def test_gpu_bus_valid(bus):
    validate_device(Device(type="gpu", bus=bus))
    assert Device(type="gpu", bus=bus).set_fields() in (["type", "bus"], ["type"])


def test_usb_bus_rejected():
    with pytest.raises(ValidationError, match="usb"):
        validate_device(Device(type="gpu", bus="usb"))


def test_invalid_bus():
    with pytest.raises(ValidationError, match="invalid bus: invalid-bus"):
        validate_device(Device(type="gpu", bus="invalid-bus"))


def test_validate_bus_extra_fields():
    device = Device(bus="pci", vram="1G")
    validate_bus(device, ["vram"])
    with pytest.raises(ValidationError, match="pci device: invalid field: vram"):
        validate_bus(device)


# CPU


@pytest.mark.parametrize("arch", [constants.AMD64, constants.ARM64])
def test_cpu_architecture_valid(arch):
    device = Device(type="cpu", architecture=arch)
    validate_cpu(device)
    assert device.set_fields() == ["type", "architecture"]


def test_cpu_architecture_invalid():
    with pytest.raises(ValidationError, match="invalid architecture: invalid-arch"):
        validate_cpu(Device(type="cpu", architecture="invalid-arch"))


def test_cpu_architecture_required():
    with pytest.raises(ValidationError, match="architecture field required"):
        validate_cpu(Device(type="cpu"))


def test_cpu_amd64_valid_fields():
    device = Device(
        type="cpu",
        architecture=constants.AMD64,
        manufacturer_id="My Manufacturer",
        flags=["one", "two"],
    )
    validate_cpu(device)
    assert "flags" in device.set_fields()


def test_cpu_amd64_invalid_fields():
    device = Device(
        type="cpu",
        architecture=constants.AMD64,
        manufacturer_id="My Manufacturer",
        flags=["one", "two"],
        features=["one", "two"],
    )
    with pytest.raises(ValidationError, match="cpu amd64: invalid field: features"):
        validate_cpu(device)


def test_cpu_arm64_valid_fields():
    device = Device(
        type="cpu", architecture=constants.ARM64, implementer_id=0x41, features=["one", "two"]
    )
    validate_cpu(device)
    assert "features" in device.set_fields()


def test_cpu_arm64_invalid_fields():
    device = Device(
        type="cpu",
        architecture=constants.ARM64,
        implementer_id=0x41,
        features=["one", "two"],
        flags=["one", "two"],
    )
    with pytest.raises(ValidationError, match="cpu arm64: invalid field: flags"):
        validate_cpu(device)


# Device types


@pytest.mark.parametrize(
    "device",
    [
        Device(type="cpu", architecture=constants.AMD64),
        Device(type="gpu"),
        Device(type="npu"),
        Device(type=""),
    ],
)
def test_device_type_valid(device):
    validate_device(device)
    assert device.type in ("cpu", "gpu", "npu", "")


def test_device_type_invalid():
    with pytest.raises(ValidationError, match="invalid device type: test"):
        validate_device(Device(type="test"))


def test_gpu_valid_fields():
    device = Device(
        type="gpu", vendor_id=0xAA, device_id=0xAA, vram="1G", compute_capability="12.4"
    )
    validate_device(device)
    assert device.set_fields()[-1] == "compute-capability"


def test_gpu_invalid_fields():
    device = Device(
        type="gpu", vendor_id=0xAA, device_id=0xAA, vram="1G", manufacturer_id="test"
    )
    with pytest.raises(ValidationError, match="manufacturer-id"):
        validate_device(device)


def test_npu_valid_fields():
    device = Device(type="npu", vendor_id=0xAA, device_id=0xAA)
    validate_device(device)
    assert device.set_fields() == ["type", "vendor-id", "device-id"]


def test_npu_invalid_fields():
    device = Device(
        type="npu", vendor_id=0xAA, device_id=0xAA, vram="1G", compute_capability="12.4"
    )
    with pytest.raises(ValidationError, match="npu: npu: pci device: invalid field: vram"):
        validate_device(device)


def test_typeless_pci_valid_fields():
    device = Device(bus="pci", vendor_id=0xAA, device_id=0xAA)
    validate_device(device)
    assert device.set_fields() == ["bus", "vendor-id", "device-id"]


def test_typeless_pci_invalid_fields():
    device = Device(bus="pci", vendor_id=0xAA, device_id=0xAA, features=["one", "two"])
    with pytest.raises(ValidationError, match="typeless: typeless device"):
        validate_device(device)


def test_validate_devices_reports_position():
    devices = Devices(allof=[Device(type="gpu"), Device(type="bogus")])
    with pytest.raises(ValidationError, match="invalid device: allof 2/2"):
        validate_devices(devices)
    devices = Devices(anyof=[Device(type="bogus")])
    with pytest.raises(ValidationError, match="invalid device: anyof 1/1"):
        validate_devices(devices)


# Manifest


def test_manifest_empty():
    with pytest.raises(ValidationError, match="empty yaml data"):
        validate_manifest_yaml("", b"")


def test_unknown_field():
    data = yaml.safe_dump(template_manifest().to_dict()) + "unknown-field: test\n"
    with pytest.raises(ValidationError, match="error decoding"):
        validate_manifest_yaml("test", data)


def test_template_yaml_valid():
    data = yaml.safe_dump(template_manifest().to_dict())
    validate_manifest_yaml("test", data)
    assert yaml.safe_load(data)["name"] == "test"


@pytest.mark.parametrize(
    "field, message",
    [
        ("name", "name"),
        ("description", "description"),
        ("vendor", "vendor"),
        ("grade", "grade"),
    ],
)
def test_required_fields(field, message):
    manifest = template_manifest()
    setattr(manifest, field, "")
    with pytest.raises(ValidationError, match=f"required field is not set: {message}"):
        validate_manifest(manifest, "test")


@pytest.mark.parametrize("grade", ["stable", "devel"])
def test_grade_valid(grade):
    manifest = template_manifest()
    manifest.grade = grade
    validate_manifest(manifest, "test")
    assert manifest.grade == grade


def test_grade_invalid():
    manifest = template_manifest()
    manifest.grade = "invalid-grade"
    with pytest.raises(ValidationError, match="grade should be"):
        validate_manifest(manifest, "test")


def test_name_mismatch():
    with pytest.raises(ValidationError, match="other != test"):
        validate_manifest(template_manifest(), "other")


@pytest.mark.parametrize("value", ["1G", "512M"])
def test_memory_and_disk_valid(value):
    manifest = template_manifest()
    manifest.memory = value
    manifest.disk_space = value
    validate_manifest(manifest, "test")
    assert parse_size(value) > 0


def test_memory_not_numeric():
    manifest = template_manifest()
    manifest.memory = "abc"
    with pytest.raises(ValidationError, match="error parsing memory"):
        validate_manifest(manifest, "test")


def test_disk_not_numeric():
    manifest = template_manifest()
    manifest.disk_space = "abc"
    with pytest.raises(ValidationError, match="error parsing disk space"):
        validate_manifest(manifest, "test")


def test_config_primitive():
    manifest = template_manifest()
    manifest.configurations = {"model": True}
    validate_manifest(manifest, "test")
    assert is_primitive(True)


def test_config_not_primitive():
    manifest = template_manifest()
    manifest.configurations = {"model": ["one", "two"]}
    with pytest.raises(ValidationError, match="configuration field model"):
        validate_manifest(manifest, "test")


def test_parse_size_values():
    assert parse_size("1") == 1
    assert parse_size("1G") == 1024 * parse_size("1M")
    with pytest.raises(ValueError):
        parse_size("abc")


def test_is_primitive():
    assert [is_primitive(v) for v in ("a", 1, 1.5, False, None, [], {})] == [
        True,
        True,
        True,
        True,
        False,
        False,
        False,
    ]


# Files


MANIFEST_TEXT = """\
name: {name}
description: An engine
vendor: Example Vendor
grade: stable
devices:
  allof:
    - type: cpu
      architecture: amd64
      flags: [avx2]
  anyof:
    - type: gpu
      vendor-id: 0x8086
      vram: 4G
memory: 2G
disk-space: 5G
components: [llamacpp]
configurations:
  engine: llamacpp
"""


@pytest.fixture
def engines_dir(tmp_path):
    for name in ("intel-cpu", "intel-gpu"):
        (tmp_path / name).mkdir()
        (tmp_path / name / MANIFEST_FILENAME).write_text(MANIFEST_TEXT.format(name=name))
    return tmp_path


@pytest.mark.parametrize("engine", ["intel-cpu", "intel-gpu"])
def test_manifest_files(engines_dir, engine):
    path = engines_dir / engine / MANIFEST_FILENAME
    validate(path)
    assert engine_name_from_path(path) == engine


def test_validate_directory_mismatch(engines_dir):
    (engines_dir / "renamed").mkdir()
    path = engines_dir / "renamed" / MANIFEST_FILENAME
    path.write_text(MANIFEST_TEXT.format(name="intel-cpu"))
    with pytest.raises(ValidationError, match="renamed != intel-cpu"):
        validate(path)


def test_validate_wrong_filename(tmp_path):
    with pytest.raises(ValidationError, match="must be called engine.yaml"):
        validate(tmp_path / "manifest.yaml")


def test_validate_missing_file(tmp_path):
    with pytest.raises(ValidationError, match="does not exist"):
        validate(tmp_path / "x" / MANIFEST_FILENAME)


def test_engine_name_from_path():
    assert engine_name_from_path("engine.yaml") == ""
    assert engine_name_from_path("a/b/engine.yaml") == "b"
    assert engine_name_from_path("/engine.yaml") == ""