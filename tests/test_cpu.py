from pebblekit.cpu import (
    LEAF_HYPERVISOR_FREQUENCIES,
    LEAF_HYPERVISOR_VENDOR,
    LEAF_PROCESSOR_INFO,
    LEAF_TSC_FREQUENCY,
    LEAF_VENDOR_ID,
    CpuidResult,
    CpuInfo,
    HypervisorVendor,
    Microarch,
    Vendor,
    decode_hypervisor_info,
    decode_model_info,
    decode_supported_features,
    decode_vendor,
)


def _regs(text: bytes) -> list[int]:
    return [int.from_bytes(text[i : i + 4], "little") for i in range(0, 12, 4)]


def _vendor_leaf(text: bytes, max_level: int) -> CpuidResult:
    b, d, c = _regs(text)
    return CpuidResult(a=max_level, b=b, c=c, d=d)


def _fake_cpuid(leaves):
    return lambda leaf: leaves.get(leaf, CpuidResult())


def _model_eax(family, model, stepping, ext_model=0, ext_family=0):
    return (ext_family << 20) | (ext_model << 16) | (family << 8) | (model << 4) | stepping


def test_decode_vendor():
    assert decode_vendor(_vendor_leaf(b"GenuineIntel", 0)) is Vendor.INTEL
    assert decode_vendor(_vendor_leaf(b"AuthenticAMD", 0)) is Vendor.AMD
    assert decode_vendor(_vendor_leaf(b"SomethingXYZ", 0)) is Vendor.UNKNOWN
    assert decode_vendor(CpuidResult(b=0xFFFF_FFFF)) is Vendor.UNKNOWN


def test_decode_model_info_intel_family_6():
    info = decode_model_info(_model_eax(6, 0xE, 5, ext_model=1))
    assert (info.family, info.model, info.stepping) == (6, 0xE, 5)
    assert info.extended_family == 6
    assert info.extended_model == 0x1E


def test_decode_model_info_other_family_ignores_extensions():
    info = decode_model_info(_model_eax(5, 3, 1, ext_model=2, ext_family=4))
    assert info.extended_family == info.family
    assert info.extended_model == info.model


def test_decode_supported_features():
    assert decode_supported_features(1 << 26, 0).xsave is True
    assert decode_supported_features(~(1 << 26) & 0xFFFF_FFFF, 0xFFFF_FFFF).xsave is False


def test_no_hypervisor_when_bit_clear():
    cpuid = _fake_cpuid({LEAF_PROCESSOR_INFO: CpuidResult(c=0)})
    assert decode_hypervisor_info(cpuid) is None


def test_kvm_hypervisor_with_frequencies():
    b, c, d = _regs(b"KVMKVMKVM\0\0\0")
    bus_khz = 1000
    cpuid = _fake_cpuid(
        {
            LEAF_PROCESSOR_INFO: CpuidResult(c=1 << 31),
            LEAF_HYPERVISOR_VENDOR: CpuidResult(a=LEAF_HYPERVISOR_FREQUENCIES, b=b, c=c, d=d),
            LEAF_HYPERVISOR_FREQUENCIES: CpuidResult(b=bus_khz),
        }
    )
    info = decode_hypervisor_info(cpuid)
    assert info.vendor is HypervisorVendor.KVM
    assert info.max_leaf == LEAF_HYPERVISOR_FREQUENCIES
    assert info.apic_frequency == bus_khz * 1000


def test_unknown_hypervisor_without_timing_leaf():
    cpuid = _fake_cpuid(
        {
            LEAF_PROCESSOR_INFO: CpuidResult(c=1 << 31),
            LEAF_HYPERVISOR_VENDOR: CpuidResult(a=LEAF_HYPERVISOR_VENDOR),
        }
    )
    info = decode_hypervisor_info(cpuid)
    assert info.vendor is HypervisorVendor.UNKNOWN
    assert info.apic_frequency is None


def test_cpu_info_intel_microarch_and_tsc_frequency():
    crystal = 24_000_000
    cpuid = _fake_cpuid(
        {
            LEAF_VENDOR_ID: _vendor_leaf(b"GenuineIntel", LEAF_TSC_FREQUENCY),
            LEAF_PROCESSOR_INFO: CpuidResult(a=_model_eax(6, 0xE, 9, ext_model=9)),
            LEAF_TSC_FREQUENCY: CpuidResult(c=crystal),
        }
    )
    info = CpuInfo.from_cpuid(cpuid)
    assert info.vendor is Vendor.INTEL
    assert info.max_supported_standard_level == LEAF_TSC_FREQUENCY
    assert info.microarch() is Microarch.KABY_LAKE
    assert info.hypervisor_info is None
    assert info.apic_frequency() == crystal


def test_cpu_info_amd_zen_without_frequency():
    cpuid = _fake_cpuid(
        {
            LEAF_VENDOR_ID: _vendor_leaf(b"AuthenticAMD", 0xD),
            LEAF_PROCESSOR_INFO: CpuidResult(a=_model_eax(0xF, 1, 0, ext_family=8)),
        }
    )
    info = CpuInfo.from_cpuid(cpuid)
    assert info.model_info.extended_family == 0x17
    assert info.microarch() is Microarch.ZEN
    assert info.apic_frequency() is None


def test_unknown_vendor_has_no_microarch():
    cpuid = _fake_cpuid({LEAF_PROCESSOR_INFO: CpuidResult(a=_model_eax(6, 0xE, 0, ext_model=1))})
    info = CpuInfo.from_cpuid(cpuid)
    assert info.vendor is Vendor.UNKNOWN
    assert info.microarch() is None