"""The x86_64 Global Descriptor Table, its segment selectors and the Task State Segment."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

from pebblekit.addresses import VirtualAddress


class PrivilegeLevel(enum.IntEnum):
    RING0 = 0
    RING1 = 1
    RING2 = 2
    RING3 = 3


@dataclass(frozen=True)
class SegmentSelector:
    """An index into the GDT plus a requested privilege level, as loaded into segment registers."""

    value: int

    @classmethod
    def new(cls, index: int, rpl: PrivilegeLevel) -> SegmentSelector:
        if not 0 <= index < 1 << 13:
            raise ValueError(f"segment index {index} does not fit in a selector")
        return cls((index << 3) | int(rpl))

    def table_offset(self) -> int:
        """The byte offset of the selected descriptor within the table."""
        return (self.value >> 3) * 0x8


ACCESSED = 1 << 40
READABLE = 1 << 41
WRITABLE = 1 << 41
CONFORMING_OR_EXECUTABLE = 1 << 43
USER_SEGMENT = 1 << 44
PRESENT = 1 << 47
LONG_MODE = 1 << 53


def code_segment(ring: PrivilegeLevel) -> int:
    """A 64-bit code segment descriptor for the given ring."""
    # Accessed and readable are ignored for 64-bit code segments, but some hardware faults
    # if they are not set.
    return (
        ACCESSED
        | READABLE
        | CONFORMING_OR_EXECUTABLE
        | USER_SEGMENT
        | PRESENT
        | LONG_MODE
        | (int(ring) << 45)
    )


def data_segment(ring: PrivilegeLevel) -> int:
    """A data segment descriptor for the given ring."""
    return ACCESSED | WRITABLE | PRESENT | USER_SEGMENT | (int(ring) << 45)


_TSS_LAYOUT = struct.Struct("<I3QQ7QQHH")


def _zero_addresses(count: int) -> list[VirtualAddress]:
    return [VirtualAddress(0) for _ in range(count)]


@dataclass
class Tss:
    """The Task State Segment: holds the stacks switched to on privilege changes and interrupts."""

    privilege_stack_table: list[VirtualAddress] = field(default_factory=lambda: _zero_addresses(3))
    interrupt_stack_table: list[VirtualAddress] = field(default_factory=lambda: _zero_addresses(7))
    iomap_base: int = 0

    SIZE = _TSS_LAYOUT.size

    def __post_init__(self) -> None:
        if len(self.privilege_stack_table) != 3:
            raise ValueError("the privilege stack table holds exactly 3 addresses")
        if len(self.interrupt_stack_table) != 7:
            raise ValueError("the interrupt stack table holds exactly 7 addresses")

    def set_kernel_stack(self, address: VirtualAddress) -> None:
        """Set the stack loaded on entry to ring 0."""
        self.privilege_stack_table[0] = address

    def to_bytes(self) -> bytes:
        """The TSS as laid out in memory."""
        return _TSS_LAYOUT.pack(
            0,
            *(int(address) for address in self.privilege_stack_table),
            0,
            *(int(address) for address in self.interrupt_stack_table),
            0,
            0,
            self.iomap_base,
        )


@dataclass(frozen=True)
class TssSegment:
    """The 16-byte system descriptor that points the GDT at a TSS."""

    low: int
    high: int

    @classmethod
    def empty(cls) -> TssSegment:
        return cls(0, 0)

    @classmethod
    def for_tss(cls, tss_address: int | VirtualAddress) -> TssSegment:
        """A descriptor for an available 64-bit TSS located at ``tss_address``."""
        address = int(tss_address)
        low = PRESENT
        low |= (address & 0xFF_FFFF) << 16
        low |= ((address >> 24) & 0xFF) << 56
        high = (address >> 32) & 0xFFFF_FFFF
        # The limit is inclusive, hence one less than the size.
        low |= (Tss.SIZE - 1) & 0xFFFF
        # Type 0b1001: available 64-bit TSS.
        low |= 0b1001 << 40
        return cls(low, high)

    def to_bytes(self) -> bytes:
        return struct.pack("<QQ", self.low, self.high)


KERNEL_CODE_SELECTOR = SegmentSelector.new(1, PrivilegeLevel.RING0)
KERNEL_DATA_SELECTOR = SegmentSelector.new(2, PrivilegeLevel.RING0)
USER_COMPAT_CODE_SELECTOR = SegmentSelector.new(3, PrivilegeLevel.RING3)
USER_DATA_SELECTOR = SegmentSelector.new(4, PrivilegeLevel.RING3)
USER_CODE64_SELECTOR = SegmentSelector.new(5, PrivilegeLevel.RING3)

NUM_STATIC_ENTRIES = 7
OFFSET_TO_FIRST_TSS = 0x30
MAX_CPUS = 8

_TSS_SEGMENT_SIZE = 16


class Gdt:
    """A kernel GDT with fixed code and data segments and room for ``MAX_CPUS`` TSSs.

    The ring 3 segments are ordered compatibility code, data, 64-bit code, as ``sysret`` expects.
    """

    def __init__(self) -> None:
        self.null = 0
        self.kernel_code = code_segment(PrivilegeLevel.RING0)
        self.kernel_data = data_segment(PrivilegeLevel.RING0)
        self.user_compat_code = 0
        self.user_data = data_segment(PrivilegeLevel.RING3)
        self.user_code64 = code_segment(PrivilegeLevel.RING3)
        self.tsss = [TssSegment.empty() for _ in range(MAX_CPUS)]
        self.next_free_tss = 0

    def add_tss(self, tss: TssSegment) -> SegmentSelector:
        """Add a TSS descriptor, returning its selector. The first must be the bootstrap CPU's."""
        if self.next_free_tss == MAX_CPUS:
            raise RuntimeError("not enough space in the GDT for the number of TSSs needed")
        offset = OFFSET_TO_FIRST_TSS + self.next_free_tss * _TSS_SEGMENT_SIZE
        self.tsss[self.next_free_tss] = tss
        self.next_free_tss += 1
        return SegmentSelector(offset)

    def limit(self) -> int:
        """The limit field of the descriptor table pointer used to load this GDT."""
        return NUM_STATIC_ENTRIES * 8 + MAX_CPUS * _TSS_SEGMENT_SIZE - 1

    def to_bytes(self) -> bytes:
        """The table as laid out in memory."""
        static = struct.pack(
            "<6Q",
            self.null,
            self.kernel_code,
            self.kernel_data,
            self.user_compat_code,
            self.user_data,
            self.user_code64,
        )
        return static + b"".join(tss.to_bytes() for tss in self.tsss)