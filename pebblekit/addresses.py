"""Physical and canonical virtual addresses for x86_64, and the frame and page sizes."""

from __future__ import annotations

import enum
import functools

KIBIBYTES_TO_BYTES = 1024
MEBIBYTES_TO_BYTES = 1024 * KIBIBYTES_TO_BYTES
GIBIBYTES_TO_BYTES = 1024 * MEBIBYTES_TO_BYTES

MAX_PHYSICAL_ADDRESS = (1 << 52) - 1

_U64_LIMIT = 1 << 64
_LOW_HALF_END = 0x0000_7FFF_FFFF_FFFF
_HIGH_HALF_START = 0xFFFF_8000_0000_0000
_SIGN_EXTENSION = 0xFFFF_0000_0000_0000
_LOW_48_BITS = (1 << 48) - 1


class FrameSize(enum.IntEnum):
    """The sizes, in bytes, of frames and pages."""

    SIZE_4KIB = 4 * KIBIBYTES_TO_BYTES
    SIZE_2MIB = 2 * MEBIBYTES_TO_BYTES

    @property
    def log2_size(self) -> int:
        """The base-2 logarithm of the size in bytes."""
        return self.value.bit_length() - 1


def _is_power_of_two(x: int) -> bool:
    return x > 0 and x & (x - 1) == 0


@functools.total_ordering
class _Address:
    __slots__ = ("_value",)

    _value: int

    def __int__(self) -> int:
        return self._value

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._value == other._value

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._value < other._value

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._value))

    def __format__(self, spec: str) -> str:
        return format(self._value, spec or "#x")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value:#x})"


class PhysicalAddress(_Address):
    """An address in the physical memory space; valid addresses are below 2^52."""

    __slots__ = ()

    def __init__(self, address: int) -> None:
        if not 0 <= address <= MAX_PHYSICAL_ADDRESS:
            raise ValueError(f"{address:#x} is not a valid physical address")
        self._value = address

    def offset_into_frame(self, size: int) -> int:
        """The offset of this address into a frame of ``size`` bytes."""
        return self._value % int(size)

    def is_frame_aligned(self, size: int) -> bool:
        return self.offset_into_frame(size) == 0

    def align_down(self, align: int) -> PhysicalAddress:
        """The greatest address at or below this one with the given alignment (0 or a power of two)."""
        if _is_power_of_two(align):
            return PhysicalAddress(self._value & ~(align - 1))
        if align != 0:
            raise ValueError(f"alignment {align} is neither 0 nor a power of two")
        return self

    def align_up(self, align: int) -> PhysicalAddress:
        """The smallest address at or above this one with the given alignment."""
        raised = self._value + align - 1
        if _is_power_of_two(align):
            return PhysicalAddress(raised & ~(align - 1))
        if align != 0:
            raise ValueError(f"alignment {align} is neither 0 nor a power of two")
        return PhysicalAddress(raised)

    def __add__(self, other: int) -> PhysicalAddress:
        if not isinstance(other, int):
            return NotImplemented
        result = self._value + other
        if not 0 <= result <= MAX_PHYSICAL_ADDRESS:
            raise ValueError(
                f"physical address arithmetic led to invalid address: {self._value:#x} + {other:#x}"
            )
        return PhysicalAddress(result)

    def __sub__(self, other: int) -> PhysicalAddress:
        if not isinstance(other, int):
            return NotImplemented
        result = self._value - other
        if not 0 <= result <= MAX_PHYSICAL_ADDRESS:
            raise ValueError(
                f"physical address arithmetic led to invalid address: {self._value:#x} - {other:#x}"
            )
        return PhysicalAddress(result)

    def __int__(self) -> int:
        return self._value


class VirtualAddress(_Address):
    """A canonical virtual address: bits 48 to 63 are copies of bit 47."""

    __slots__ = ()

    def __init__(self, address: int) -> None:
        if not (0 <= address <= _LOW_HALF_END or _HIGH_HALF_START <= address < _U64_LIMIT):
            raise ValueError(f"{address:#x} is not a canonical virtual address")
        self._value = address

    @classmethod
    def canonicalised(cls, address: int) -> VirtualAddress:
        """Create an address from ``address``, sign-extending bit 47 to make it canonical."""
        sign = _SIGN_EXTENSION if (address >> 47) & 1 else 0
        return cls(sign | (address & _LOW_48_BITS))

    @classmethod
    def from_page_table_offsets(
        cls, p4: int, p3: int, p2: int, p1: int, offset: int
    ) -> VirtualAddress:
        """Build the address selected by the given page table indices and page offset."""
        return cls.canonicalised((p4 << 39) | (p3 << 30) | (p2 << 21) | (p1 << 12) | offset)

    def offset(self, offset: int) -> VirtualAddress:
        """This address moved by a signed ``offset``, canonicalised."""
        return VirtualAddress.canonicalised(self._value + offset)

    def offset_into_page(self, size: int) -> int:
        return self._value % int(size)

    def is_page_aligned(self, size: int) -> bool:
        return self.offset_into_page(size) == 0

    def is_aligned_to(self, alignment: int) -> bool:
        return self._value % alignment == 0

    def align_down(self, align: int) -> VirtualAddress:
        """The greatest address at or below this one with the given alignment (0 or a power of two)."""
        if align != 0 and not _is_power_of_two(align):
            raise ValueError(f"alignment {align} is neither 0 nor a power of two")
        if align == 0:
            return self
        return VirtualAddress.canonicalised(self._value & ~(align - 1))

    def align_up(self, align: int) -> VirtualAddress:
        """The smallest address at or above this one with the given alignment (a power of two)."""
        if align < 1:
            raise ValueError(f"cannot align up to {align}")
        return (self + (align - 1)).align_down(align)

    def canonicalise(self) -> VirtualAddress:
        return VirtualAddress.canonicalised(self._value)

    def p4_index(self) -> int:
        return (self._value >> 39) & 0x1FF

    def p3_index(self) -> int:
        return (self._value >> 30) & 0x1FF

    def p2_index(self) -> int:
        return (self._value >> 21) & 0x1FF

    def p1_index(self) -> int:
        return (self._value >> 12) & 0x1FF

    def __add__(self, other: int) -> VirtualAddress:
        if not isinstance(other, int):
            return NotImplemented
        result = self._value + other
        if not 0 <= result < _U64_LIMIT:
            raise ValueError(f"virtual address arithmetic overflowed: {self._value:#x} + {other:#x}")
        return VirtualAddress.canonicalised(result)

    def __sub__(self, other: int) -> VirtualAddress:
        if not isinstance(other, int):
            return NotImplemented
        result = self._value - other
        if not 0 <= result < _U64_LIMIT:
            raise ValueError(f"virtual address arithmetic overflowed: {self._value:#x} - {other:#x}")
        return VirtualAddress.canonicalised(result)

    def __int__(self) -> int:
        return self._value