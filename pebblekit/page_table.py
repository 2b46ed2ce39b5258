"""Four-level x86_64 page tables, built over a model of physical memory."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import Iterator

from pebblekit.addresses import FrameSize, PhysicalAddress, VirtualAddress
from pebblekit.frames import Frame, Page

ENTRY_COUNT = 512
"""Every page table has 512 entries."""

_ADDRESS_MASK = 0x000F_FFFF_FFFF_F000


class FrameAllocator(abc.ABC):
    """Hands out and takes back physical frames for the page tables to live in."""

    def allocate(self) -> Frame:
        """Allocate a single frame; by default the first of ``allocate_n(1)``."""
        start, _end = self.allocate_n(1)
        return start

    @abc.abstractmethod
    def allocate_n(self, n: int) -> tuple[Frame, Frame]:
        """Allocate ``n`` contiguous frames, returning the first and the one past the last."""

    @abc.abstractmethod
    def free_n(self, start: Frame, n: int) -> None:
        """Free ``n`` frames, starting at ``start``, that this allocator handed out."""


class EntryFlags(enum.IntFlag):
    """The flag bits of a page table entry."""

    PRESENT = 1 << 0
    WRITABLE = 1 << 1
    USER_ACCESSIBLE = 1 << 2
    WRITE_THROUGH = 1 << 3
    NO_CACHE = 1 << 4
    ACCESSED = 1 << 5
    DIRTY = 1 << 6
    HUGE_PAGE = 1 << 7
    GLOBAL = 1 << 8
    NO_EXECUTE = 1 << 63

    @classmethod
    def default(cls) -> EntryFlags:
        return cls.PRESENT


_ALL_FLAGS = 0
for _flag in EntryFlags:
    _ALL_FLAGS |= int(_flag)


class Entry:
    """One 64-bit page table entry."""

    __slots__ = ("value",)

    def __init__(self, value: int = 0) -> None:
        self.value = value

    def is_unused(self) -> bool:
        return self.value == 0

    def flags(self) -> EntryFlags:
        """The known flag bits set in this entry; other bits are ignored."""
        return EntryFlags(self.value & _ALL_FLAGS)

    def address(self) -> PhysicalAddress | None:
        """The physical address this entry points to, or ``None`` if it is not present."""
        if EntryFlags.PRESENT not in self.flags():
            return None
        return PhysicalAddress(self.value & _ADDRESS_MASK)

    def set_unused(self) -> None:
        self.value = 0

    def set(self, address: PhysicalAddress, flags: EntryFlags) -> None:
        """Point this entry at ``address`` with ``flags``; ``PRESENT`` is always added."""
        self.value = int(address) | int(flags | EntryFlags.PRESENT)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return self.value == other.value

    def __repr__(self) -> str:
        flags = self.flags()
        if EntryFlags.PRESENT not in flags:
            return "Not Present"
        prefix = "[HUGE] " if EntryFlags.HUGE_PAGE in flags else ""
        return f"{prefix}Address: {int(self.address()):#x}, flags: {flags!r}"


class Table:
    """A page table of 512 entries, at any level of the hierarchy."""

    def __init__(self) -> None:
        self._entries = [Entry() for _ in range(ENTRY_COUNT)]

    def __getitem__(self, index: int) -> Entry:
        return self._entries[index]

    def __len__(self) -> int:
        return ENTRY_COUNT

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def zero(self) -> None:
        """Mark every entry unused."""
        for entry in self._entries:
            entry.set_unused()

    def next_table(self, index: int, memory: PhysicalMemory) -> Table | None:
        """The child table that entry ``index`` points to, or ``None`` if it is not present."""
        address = self[index].address()
        if address is None:
            return None
        return memory.table(address)

    def next_table_create(
        self,
        index: int,
        user_accessible: bool,
        allocator: FrameAllocator,
        memory: PhysicalMemory,
    ) -> Table:
        """The child table at ``index``, allocating and zeroing a new one if there is none.

        Raises ``HugePageConflictError`` if the entry maps a huge page instead of a table.
        """
        if self.next_table(index, memory) is None:
            flags = EntryFlags.default() | EntryFlags.WRITABLE
            if user_accessible:
                flags |= EntryFlags.USER_ACCESSIBLE
            self[index].set(allocator.allocate().start_address, flags)
            table = self.next_table(index, memory)
            table.zero()
            return table

        if EntryFlags.HUGE_PAGE in self[index].flags():
            raise HugePageConflictError(
                f"entry {index} maps a huge page, so no table can be created under it"
            )
        return self.next_table(index, memory)


class PhysicalMemory:
    """A model of physical memory, in which any frame can be viewed as a page table."""

    def __init__(self) -> None:
        self._tables: dict[int, Table] = {}

    def table(self, address: PhysicalAddress) -> Table:
        """The page table held in the frame at ``address``."""
        return self._tables.setdefault(int(address), Table())


class PageTable:
    """A complete set of page tables, rooted at the P4 held in a frame."""

    def __init__(self, frame: Frame, memory: PhysicalMemory) -> None:
        self.p4_frame = frame
        self.memory = memory
        self._p4().zero()

    @classmethod
    def from_frame(cls, frame: Frame, memory: PhysicalMemory) -> PageTable:
        """Use a frame that already holds a P4, keeping its mappings."""
        table = cls.__new__(cls)
        table.p4_frame = frame
        table.memory = memory
        return table

    def _p4(self) -> Table:
        return self.memory.table(self.p4_frame.start_address)

    def mapper(self) -> Mapper:
        return Mapper(self.memory, self._p4())


@dataclass(frozen=True)
class TranslationResult:
    """Where a virtual address is mapped: a 4 KiB or 2 MiB frame, or ``None`` if not mapped."""

    frame: Frame | None = None

    @property
    def is_mapped(self) -> bool:
        return self.frame is not None


class MapError(Exception):
    """Raised when a page cannot be mapped."""


class AlreadyMappedError(MapError):
    """The page is already mapped."""


class HugePageConflictError(MapError):
    """A table was needed where a huge page is already mapped."""


def _require_size(block, size: FrameSize, what: str) -> None:
    if block.size != size:
        raise ValueError(f"{what} must be of size {size.name}, not {block.size.name}")


@dataclass
class Mapper:
    """Reads and changes the mappings of a set of page tables."""

    memory: PhysicalMemory
    p4: Table

    def translate(self, address: VirtualAddress) -> TranslationResult:
        p3 = self.p4.next_table(address.p4_index(), self.memory)
        p2 = None if p3 is None else p3.next_table(address.p3_index(), self.memory)
        if p2 is None:
            return TranslationResult()

        p2_entry = p2[address.p2_index()]
        if EntryFlags.HUGE_PAGE in p2_entry.flags():
            return TranslationResult(Frame.starts_with(p2_entry.address(), FrameSize.SIZE_2MIB))

        p1 = p2.next_table(address.p2_index(), self.memory)
        if p1 is None:
            return TranslationResult()

        frame_address = p1[address.p1_index()].address()
        if frame_address is None:
            return TranslationResult()
        return TranslationResult(Frame.starts_with(frame_address, FrameSize.SIZE_4KIB))

    def map(self, page: Page, flags: EntryFlags, allocator: FrameAllocator) -> Frame:
        """Map ``page`` to a newly allocated frame, which is returned."""
        frame = allocator.allocate()
        self.map_to(page, frame, flags, allocator)
        return frame

    def map_to(
        self, page: Page, frame: Frame, flags: EntryFlags, allocator: FrameAllocator
    ) -> None:
        """Map a 4 KiB ``page`` to ``frame``."""
        _require_size(page, FrameSize.SIZE_4KIB, "page")
        _require_size(frame, FrameSize.SIZE_4KIB, "frame")
        start = page.start_address
        user_accessible = EntryFlags.USER_ACCESSIBLE in flags
        p1 = (
            self.p4.next_table_create(start.p4_index(), user_accessible, allocator, self.memory)
            .next_table_create(start.p3_index(), user_accessible, allocator, self.memory)
            .next_table_create(start.p2_index(), user_accessible, allocator, self.memory)
        )

        entry = p1[start.p1_index()]
        if not entry.is_unused():
            raise AlreadyMappedError(f"{start!r} is already mapped")
        entry.set(frame.start_address, flags | EntryFlags.default())

    def map_to_2mib(
        self, page: Page, frame: Frame, flags: EntryFlags, allocator: FrameAllocator
    ) -> None:
        """Map a 2 MiB ``page`` to a 2 MiB ``frame`` with a huge-page entry."""
        _require_size(page, FrameSize.SIZE_2MIB, "page")
        _require_size(frame, FrameSize.SIZE_2MIB, "frame")
        start = page.start_address
        user_accessible = EntryFlags.USER_ACCESSIBLE in flags
        p2 = self.p4.next_table_create(
            start.p4_index(), user_accessible, allocator, self.memory
        ).next_table_create(start.p3_index(), user_accessible, allocator, self.memory)

        entry = p2[start.p2_index()]
        if not entry.is_unused():
            raise AlreadyMappedError(f"{start!r} is already mapped")
        entry.set(frame.start_address, flags | EntryFlags.HUGE_PAGE | EntryFlags.default())

    def unmap(self, page: Page) -> Frame | None:
        """Unmap a 4 KiB ``page``, returning its frame, or ``None`` if it was not mapped."""
        _require_size(page, FrameSize.SIZE_4KIB, "page")
        start = page.start_address
        p3 = self.p4.next_table(start.p4_index(), self.memory)
        p2 = None if p3 is None else p3.next_table(start.p3_index(), self.memory)
        p1 = None if p2 is None else p2.next_table(start.p2_index(), self.memory)
        if p1 is None:
            return None
        entry = p1[start.p1_index()]
        address = entry.address()
        if address is None:
            return None
        entry.set_unused()
        return Frame.starts_with(address, FrameSize.SIZE_4KIB)