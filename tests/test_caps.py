import pytest

from pebblekit.caps import (
    CAPS_NOTE_OWNER,
    CAPS_NOTE_TYPE,
    Capability,
    CapabilityKind,
    KernelObjectId,
    encode_capabilities_note,
)
from pebblekit.elf import iter_notes


def test_encode_matches_test_process_caps():
    expected = (
        (6).to_bytes(4, "little")
        + (1).to_bytes(4, "little")
        + (0).to_bytes(4, "little")
        + b"PEBBLE\0\0"
        + bytes([0x31, 0x00, 0x00, 0x00])
    )
    assert encode_capabilities_note(b"\x31") == expected


@pytest.mark.parametrize("desc", [b"", b"\x31", b"\x01\x02\x03\x04", b"\x05" * 7])
def test_note_round_trip(desc):
    encoded = encode_capabilities_note(desc)
    assert len(encoded) % 4 == 0
    entries = list(iter_notes(encoded))
    assert len(entries) == 1
    assert entries[0].name == CAPS_NOTE_OWNER
    assert entries[0].entry_type == CAPS_NOTE_TYPE
    assert entries[0].desc == desc


def test_io_port_capability_needs_port():
    cap = Capability(CapabilityKind.X86_64_ACCESS_IO_PORT, 0x3F8)
    assert cap.port == 0x3F8
    with pytest.raises(ValueError):
        Capability(CapabilityKind.X86_64_ACCESS_IO_PORT)
    with pytest.raises(ValueError):
        Capability(CapabilityKind.X86_64_ACCESS_IO_PORT, 0x10000)


def test_other_capabilities_take_no_port():
    assert Capability(CapabilityKind.EARLY_LOGGING) == Capability(CapabilityKind.EARLY_LOGGING)
    with pytest.raises(ValueError):
        Capability(CapabilityKind.MAP_FRAMEBUFFER, 1)


def test_kernel_object_id_equality_and_range():
    assert KernelObjectId(3, 1) == KernelObjectId(3, 1)
    assert KernelObjectId(3, 1) != KernelObjectId(3, 2)
    with pytest.raises(ValueError):
        KernelObjectId(0x10000, 0)
    with pytest.raises(ValueError):
        KernelObjectId(0, -1)