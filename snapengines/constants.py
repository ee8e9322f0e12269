"""Shared constants: PCI vendor ids, architecture names and snap paths."""

PCI_VENDOR_AMD = 0x1002
PCI_VENDOR_INTEL = 0x8086
PCI_VENDOR_NVIDIA = 0x10DE

ARM64 = "arm64"
AMD64 = "amd64"
ARMHF = "armhf"
I386 = "i386"
POWERPC = "powerpc"
PPC64 = "ppc64"
PPC64EL = "ppc64el"
RISCV64 = "riscv64"
S390X = "s390x"

SNAP_STORAGE_PATH = "/var/lib/snapd/snaps"