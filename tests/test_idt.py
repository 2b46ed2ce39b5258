import pytest

from pebblekit.addresses import VirtualAddress
from pebblekit.gdt import KERNEL_CODE_SELECTOR, PrivilegeLevel
from pebblekit.idt import Idt, IdtEntry, Vector


def test_missing_entry():
    entry = IdtEntry.missing()
    assert entry.flags == 0b0000_1110
    assert entry.to_bytes()[5] == 0b0000_1110
    assert entry.handler_address == 0


@pytest.mark.parametrize(
    "address", [0x1000, 0xFFFF_FFFF_8012_3456, 0x0000_7FFF_DEAD_BEEF]
)
def test_set_handler_round_trip(address):
    entry = IdtEntry.missing()
    result = entry.set_handler(address, KERNEL_CODE_SELECTOR)
    assert result is entry
    assert entry.handler_address == address
    assert entry.segment_selector == KERNEL_CODE_SELECTOR.table_offset()
    assert entry.flags & 0x80
    assert entry.flags & 0xF == 0b1110


def test_set_handler_accepts_virtual_address():
    address = VirtualAddress(0xFFFF_FFFF_8000_2000)
    entry = IdtEntry.missing().set_handler(address, KERNEL_CODE_SELECTOR)
    assert entry.handler_address == int(address)


def test_set_privilege_level_keeps_present():
    entry = IdtEntry.missing().set_handler(0x1000, KERNEL_CODE_SELECTOR)
    entry.set_privilege_level(PrivilegeLevel.RING3)
    assert (entry.flags >> 5) & 0b11 == PrivilegeLevel.RING3
    assert entry.flags & 0x80
    entry.set_privilege_level(PrivilegeLevel.RING0)
    assert (entry.flags >> 5) & 0b11 == PrivilegeLevel.RING0


def test_set_ist_handler():
    entry = IdtEntry.missing().set_ist_handler(1)
    assert entry.ist_offset == 1
    assert entry.to_bytes()[4] == 1


def test_set_ist_handler_out_of_range():
    with pytest.raises(ValueError):
        IdtEntry.missing().set_ist_handler(300)


def test_entry_bytes_little_endian_address():
    address = 0x1122_3344_5566_7788
    raw = IdtEntry.missing().set_handler(address, KERNEL_CODE_SELECTOR).to_bytes()
    assert len(raw) == IdtEntry.SIZE
    parts = raw[0:2] + raw[6:8] + raw[8:12]
    assert int.from_bytes(parts, "little") == address
    assert raw[12:16] == bytes(4)


def test_idt_vector_indexing_shares_entries():
    idt = Idt()
    idt[Vector.PAGE_FAULT].set_handler(0x4000, KERNEL_CODE_SELECTOR)
    assert idt[14].handler_address == 0x4000
    assert idt[Vector.DOUBLE_FAULT].handler_address == 0


def test_idt_index_out_of_range():
    idt = Idt()
    assert idt[255].flags == 0b0000_1110
    with pytest.raises(IndexError):
        idt[256]


def test_idt_to_bytes():
    idt = Idt()
    idt[Vector.BREAKPOINT].set_handler(0x8000, KERNEL_CODE_SELECTOR)
    raw = idt.to_bytes()
    assert len(raw) == len(idt) * IdtEntry.SIZE
    assert Idt.LIMIT == len(raw) - 1
    start = Vector.BREAKPOINT * IdtEntry.SIZE
    assert raw[start : start + IdtEntry.SIZE] == idt[Vector.BREAKPOINT].to_bytes()