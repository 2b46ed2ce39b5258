"""The x86_64 Interrupt Descriptor Table."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from pebblekit.addresses import VirtualAddress
from pebblekit.gdt import PrivilegeLevel, SegmentSelector

_ENTRY_LAYOUT = struct.Struct("<HHBBHII")
_GATE_TYPE_INTERRUPT = 0b1110
_PRESENT = 1 << 7
NUM_ENTRIES = 256


class Vector(enum.IntEnum):
    """The architecturally defined exception vectors."""

    DIVIDE_ERROR = 0
    DEBUG_EXCEPTION = 1
    NMI = 2
    BREAKPOINT = 3
    OVERFLOW = 4
    BOUND_RANGE_EXCEEDED = 5
    INVALID_OPCODE = 6
    DEVICE_NOT_AVAILABLE = 7
    DOUBLE_FAULT = 8
    INVALID_TSS = 10
    SEGMENT_NOT_PRESENT = 11
    STACK_SEGMENT_FAULT = 12
    GENERAL_PROTECTION_FAULT = 13
    PAGE_FAULT = 14
    X87_FAULT = 16
    ALIGNMENT_CHECK = 17
    MACHINE_CHECK = 18
    SIMD_EXCEPTION = 19
    VIRTUALIZATION_EXCEPTION = 20


@dataclass
class IdtEntry:
    """One gate descriptor. ``flags`` holds present (bit 7), DPL (bits 5-6) and gate type."""

    address_0_15: int = 0
    segment_selector: int = 0
    ist_offset: int = 0
    flags: int = _GATE_TYPE_INTERRUPT
    address_16_31: int = 0
    address_32_63: int = 0

    SIZE = _ENTRY_LAYOUT.size

    @classmethod
    def missing(cls) -> IdtEntry:
        """A non-present interrupt gate."""
        return cls()

    @property
    def handler_address(self) -> int:
        return self.address_0_15 | (self.address_16_31 << 16) | (self.address_32_63 << 32)

    def set_handler(
        self, handler_address: int | VirtualAddress, code_selector: SegmentSelector
    ) -> IdtEntry:
        """Make this a present interrupt gate to ``handler_address`` in the given code segment."""
        address = int(handler_address)
        if not 0 <= address < 1 << 64:
            raise ValueError(f"{address:#x} is not a 64-bit handler address")
        self.flags = _PRESENT | _GATE_TYPE_INTERRUPT
        self.segment_selector = code_selector.table_offset()
        self.address_0_15 = address & 0xFFFF
        self.address_16_31 = (address >> 16) & 0xFFFF
        self.address_32_63 = (address >> 32) & 0xFFFF_FFFF
        return self

    def set_ist_handler(self, stack_offset: int) -> IdtEntry:
        """Use the given Interrupt Stack Table slot when handling this vector (0 for none)."""
        if not 0 <= stack_offset <= 0xFF:
            raise ValueError(f"stack offset {stack_offset} does not fit in a byte")
        self.ist_offset = stack_offset
        return self

    def set_privilege_level(self, privilege_level: PrivilegeLevel) -> IdtEntry:
        """Set the lowest privilege level allowed to invoke this gate by software."""
        self.flags = (self.flags & ~(0b11 << 5)) | (int(privilege_level) << 5)
        return self

    def to_bytes(self) -> bytes:
        return _ENTRY_LAYOUT.pack(
            self.address_0_15,
            self.segment_selector,
            self.ist_offset,
            self.flags,
            self.address_16_31,
            self.address_32_63,
            0,
        )


class Idt:
    """A table of 256 gate descriptors, all initially missing."""

    LIMIT = NUM_ENTRIES * IdtEntry.SIZE - 1

    def __init__(self) -> None:
        self._entries = [IdtEntry.missing() for _ in range(NUM_ENTRIES)]

    def __getitem__(self, vector: int) -> IdtEntry:
        index = int(vector)
        if not 0 <= index < NUM_ENTRIES:
            raise IndexError(f"vector {index} is outside the IDT")
        return self._entries[index]

    def __len__(self) -> int:
        return NUM_ENTRIES

    def to_bytes(self) -> bytes:
        """The table as laid out in memory."""
        return b"".join(entry.to_bytes() for entry in self._entries)