import json

import pytest

from snapengines.manifest import (
    MANIFEST_FILENAME,
    Device,
    Devices,
    Manifest,
    ManifestError,
    ManifestNotFoundError,
    ScoredManifest,
    load_manifest,
    load_manifests,
    parse_manifest,
)

INTEL_CPU = """\
name: intel-cpu
description: Engine for Intel CPUs
vendor: Example Vendor
grade: stable
devices:
  allof:
    - type: cpu
      architecture: amd64
      manufacturer-id: GenuineIntel
      flags: [avx2]
memory: 2G
disk-space: 5G
components:
  - llamacpp
  - model-small
configurations:
  engine: llamacpp
  http.port: 8080
"""

INTEL_GPU = """\
name: intel-gpu
description: Engine for Intel GPUs
vendor: Example Vendor
grade: devel
devices:
  anyof:
    - type: gpu
      bus: pci
      vendor-id: 0x8086
      vram: 4G
components: [openvino]
"""


@pytest.fixture
def engines_dir(tmp_path):
    for name, text in (("intel-cpu", INTEL_CPU), ("intel-gpu", INTEL_GPU)):
        (tmp_path / name).mkdir()
        (tmp_path / name / MANIFEST_FILENAME).write_text(text)
    (tmp_path / "README").write_text("not an engine")
    return tmp_path


def test_load_manifest(engines_dir):
    manifest = load_manifest(engines_dir, "intel-cpu")
    assert manifest.name == "intel-cpu"


def test_load_manifest_nonexistent(engines_dir):
    with pytest.raises(ManifestNotFoundError):
        load_manifest(engines_dir, "nonexistent")


def test_not_found_is_manifest_error(engines_dir):
    with pytest.raises(ManifestError, match="engine manifest not found"):
        load_manifest(engines_dir, "nonexistent")


def test_load_manifests_sorted_and_skips_files(engines_dir):
    names = [m.name for m in load_manifests(engines_dir)]
    assert names == ["intel-cpu", "intel-gpu"]


def test_load_manifests_missing_manifest_file(engines_dir):
    (engines_dir / "broken").mkdir()
    with pytest.raises(ManifestError, match=MANIFEST_FILENAME):
        load_manifests(engines_dir)


def test_load_manifests_missing_dir(tmp_path):
    with pytest.raises(ManifestError):
        load_manifests(tmp_path / "absent")


def test_parsed_fields(engines_dir):
    manifest = load_manifest(engines_dir, "intel-cpu")
    assert manifest.grade == "stable"
    assert manifest.memory == "2G"
    assert manifest.disk_space == "5G"
    assert manifest.components == ["llamacpp", "model-small"]
    assert manifest.configurations == {"engine": "llamacpp", "http.port": 8080}
    device = manifest.devices.allof[0]
    assert device.type == "cpu"
    assert device.architecture == "amd64"
    assert device.manufacturer_id == "GenuineIntel"
    assert device.flags == ["avx2"]
    assert manifest.devices.anyof == []


def test_hex_ids(engines_dir):
    device = load_manifest(engines_dir, "intel-gpu").devices.anyof[0]
    assert device.vendor_id == 0x8086
    assert Device.from_dict({"vendor-id": "0x10de"}).vendor_id == 0x10DE


def test_invalid_hex():
    with pytest.raises(ManifestError):
        Device.from_dict({"device-id": "zz"})


def test_strict_rejects_unknown_field():
    with pytest.raises(ManifestError, match="unknown-field"):
        parse_manifest("name: x\nunknown-field: 1\n", strict=True)


def test_lenient_ignores_unknown_field():
    assert parse_manifest("name: x\nunknown-field: 1\n").name == "x"


def test_strict_rejects_unknown_device_field():
    with pytest.raises(ManifestError):
        Devices.from_dict({"allof": [{"colour": "red"}]}, strict=True)


def test_wrong_type_rejected():
    with pytest.raises(ManifestError):
        parse_manifest("name: x\ncomponents: notalist\n")


def test_top_level_must_be_mapping():
    with pytest.raises(ManifestError):
        parse_manifest("- a\n- b\n")


def test_set_fields():
    device = Device(type="gpu", vendor_id=0xAA, vram="1G")
    assert device.set_fields() == ["type", "vendor-id", "vram"]


def test_device_to_dict_omits_unset():
    assert Device(type="gpu", vendor_id=0x8086).to_dict() == {
        "type": "gpu",
        "vendor-id": "0x8086",
    }


def test_device_round_trip():
    device = Device(type="cpu", architecture="arm64", implementer_id=0x41, features=["sve"])
    assert Device.from_dict(device.to_dict(), strict=True) == device


def test_manifest_to_dict_keys():
    data = Manifest(name="a", grade="stable").to_dict()
    assert list(data) == [
        "name",
        "description",
        "vendor",
        "grade",
        "devices",
        "memory",
        "disk-space",
        "components",
        "configurations",
    ]
    assert data["devices"] == {"anyof": None, "allof": None}


def test_scored_manifest_to_dict():
    scored = ScoredManifest(name="a", score=12, compatible=True)
    data = scored.to_dict()
    assert data["score"] == 12
    assert data["compatible"] is True
    assert "compatibility-issues" not in data
    scored.compatibility_issues = ["no gpu"]
    assert json.loads(json.dumps(scored.to_dict()))["compatibility-issues"] == ["no gpu"]