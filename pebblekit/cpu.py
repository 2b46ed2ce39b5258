"""Decoding of ``cpuid`` results into vendor, model, feature and hypervisor information."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable

LEAF_VENDOR_ID = 0x00
LEAF_PROCESSOR_INFO = 0x01
LEAF_TSC_FREQUENCY = 0x15
LEAF_HYPERVISOR_VENDOR = 0x4000_0000
LEAF_HYPERVISOR_FREQUENCIES = 0x4000_0010


@dataclass(frozen=True)
class CpuidResult:
    """The EAX, EBX, ECX and EDX values returned by one ``cpuid`` leaf."""

    a: int = 0
    b: int = 0
    c: int = 0
    d: int = 0


Cpuid = Callable[[int], CpuidResult]


class Vendor(enum.Enum):
    UNKNOWN = enum.auto()
    INTEL = enum.auto()
    AMD = enum.auto()


class Microarch(enum.Enum):
    """x86_64 microarchitectures; die shrinks count as their parent."""

    NEHALEM = enum.auto()
    WESTMERE = enum.auto()
    SANDY_BRIDGE = enum.auto()
    IVY_BRIDGE = enum.auto()
    HASWELL = enum.auto()
    BROADWELL = enum.auto()
    SKYLAKE = enum.auto()
    KABY_LAKE = enum.auto()
    COFFEE_LAKE = enum.auto()
    CANNON_LAKE = enum.auto()
    WHISKEY_LAKE = enum.auto()
    AMBER_LAKE = enum.auto()
    BULLDOZER = enum.auto()
    JAGUAR = enum.auto()
    ZEN = enum.auto()


_INTEL_MODELS = {
    **dict.fromkeys((0x1A, 0x1E, 0x1F, 0x2E), Microarch.NEHALEM),
    **dict.fromkeys((0x25, 0x2C, 0x2F), Microarch.WESTMERE),
    **dict.fromkeys((0x2A, 0x2D), Microarch.SANDY_BRIDGE),
    **dict.fromkeys((0x3A, 0x3E), Microarch.IVY_BRIDGE),
    **dict.fromkeys((0x3C, 0x3F, 0x45, 0x46), Microarch.HASWELL),
    **dict.fromkeys((0x3D, 0x47, 0x56, 0x4F), Microarch.BROADWELL),
    **dict.fromkeys((0x4E, 0x5E, 0x55), Microarch.SKYLAKE),
    **dict.fromkeys((0x8E, 0x9E), Microarch.KABY_LAKE),
}

_AMD_FAMILIES = {
    0x15: Microarch.BULLDOZER,
    0x16: Microarch.JAGUAR,
    0x17: Microarch.ZEN,
}


@dataclass(frozen=True)
class ModelInfo:
    family: int
    model: int
    stepping: int
    extended_family: int
    extended_model: int


@dataclass(frozen=True)
class SupportedFeatures:
    xsave: bool


class HypervisorVendor(enum.Enum):
    UNKNOWN = enum.auto()
    KVM = enum.auto()


@dataclass(frozen=True)
class HypervisorInfo:
    vendor: HypervisorVendor
    max_leaf: int
    apic_frequency: int | None
    """The local APIC timer frequency in Hz, if the hypervisor reports it."""


def _bits(value: int, start: int, end: int) -> int:
    return (value >> start) & ((1 << (end - start)) - 1)


def _registers_as_text(*registers: int) -> str | None:
    raw = b"".join((r & 0xFFFF_FFFF).to_bytes(4, "little") for r in registers)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def decode_vendor(result: CpuidResult) -> Vendor:
    """The vendor named by leaf 0, whose string is spread across EBX, EDX and ECX."""
    return {
        "GenuineIntel": Vendor.INTEL,
        "AuthenticAMD": Vendor.AMD,
    }.get(_registers_as_text(result.b, result.d, result.c), Vendor.UNKNOWN)


def decode_model_info(value: int) -> ModelInfo:
    """Decode the family, model and stepping in EAX of leaf 1."""
    family = _bits(value, 8, 12)
    model = _bits(value, 4, 8)
    stepping = _bits(value, 0, 4)

    if family == 0xF:
        extended_family = (family + _bits(value, 20, 28)) & 0xFF
    else:
        extended_family = family

    if family in (0xF, 0x6):
        extended_model = (model + (_bits(value, 16, 20) << 4)) & 0xFF
    else:
        extended_model = model

    return ModelInfo(family, model, stepping, extended_family, extended_model)


def decode_supported_features(processor_info_c: int, processor_info_d: int) -> SupportedFeatures:
    """Decode the feature bits of leaf 1 that are of interest."""
    return SupportedFeatures(xsave=bool(_bits(processor_info_c, 26, 27)))


def decode_hypervisor_info(cpuid: Cpuid) -> HypervisorInfo | None:
    """Information about the hypervisor we run under, or ``None`` on bare hardware."""
    if not _bits(cpuid(LEAF_PROCESSOR_INFO).c, 31, 32):
        return None

    vendor_leaf = cpuid(LEAF_HYPERVISOR_VENDOR)
    max_leaf = vendor_leaf.a
    if _registers_as_text(vendor_leaf.b, vendor_leaf.c, vendor_leaf.d) == "KVMKVMKVM\0\0\0":
        vendor = HypervisorVendor.KVM
    else:
        vendor = HypervisorVendor.UNKNOWN

    # The timing leaf reports the bus frequency in kHz.
    apic_frequency = None
    if max_leaf >= LEAF_HYPERVISOR_FREQUENCIES:
        apic_frequency = (cpuid(LEAF_HYPERVISOR_FREQUENCIES).b * 1000) & 0xFFFF_FFFF

    return HypervisorInfo(vendor, max_leaf, apic_frequency)


@dataclass(frozen=True)
class CpuInfo:
    """What is known about the processor, gathered through ``cpuid``."""

    max_supported_standard_level: int
    vendor: Vendor
    model_info: ModelInfo
    supported_features: SupportedFeatures
    hypervisor_info: HypervisorInfo | None
    _cpuid: Cpuid = field(repr=False, compare=False)

    @classmethod
    def from_cpuid(cls, cpuid: Cpuid) -> CpuInfo:
        """Gather information using ``cpuid``, a callable from leaf number to ``CpuidResult``."""
        processor = cpuid(LEAF_PROCESSOR_INFO)
        vendor_id = cpuid(LEAF_VENDOR_ID)
        return cls(
            max_supported_standard_level=vendor_id.a,
            vendor=decode_vendor(vendor_id),
            model_info=decode_model_info(processor.a),
            supported_features=decode_supported_features(processor.c, processor.d),
            hypervisor_info=decode_hypervisor_info(cpuid),
            _cpuid=cpuid,
        )

    def microarch(self) -> Microarch | None:
        if self.vendor is Vendor.INTEL and self.model_info.family == 0x6:
            return _INTEL_MODELS.get(self.model_info.extended_model)
        if self.vendor is Vendor.AMD and self.model_info.family == 0xF:
            return _AMD_FAMILIES.get(self.model_info.extended_family)
        return None

    def apic_frequency(self) -> int | None:
        """The local APIC frequency in Hz, or ``None`` if it has to be measured another way."""
        if self.hypervisor_info is not None and self.hypervisor_info.apic_frequency is not None:
            return self.hypervisor_info.apic_frequency

        if self.max_supported_standard_level >= LEAF_TSC_FREQUENCY:
            crystal = self._cpuid(LEAF_TSC_FREQUENCY).c
            if crystal != 0:
                return crystal
        return None