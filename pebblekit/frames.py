"""Physical frames and virtual pages of 4 KiB or 2 MiB."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterator, TypeVar

from pebblekit.addresses import FrameSize, PhysicalAddress, VirtualAddress

_B = TypeVar("_B", bound="_Block")


@dataclass(frozen=True, order=True)
class _Block:
    start_address: PhysicalAddress | VirtualAddress
    size: FrameSize = FrameSize.SIZE_4KIB

    _address_type: ClassVar[type]

    def __post_init__(self) -> None:
        if not isinstance(self.start_address, self._address_type):
            raise TypeError(
                f"{type(self).__name__} needs a {self._address_type.__name__}, "
                f"not {type(self.start_address).__name__}"
            )
        if int(self.start_address) % self.size != 0:
            raise ValueError(f"{self.start_address!r} is not at the start of a {type(self).__name__.lower()}")


def _starting_at(cls: type[_B], address, size) -> _B:
    return cls(address, FrameSize(size))


def _containing(cls: type[_B], address, size) -> _B:
    size = FrameSize(size)
    return cls(address.align_down(size.value), size)


def _advance(block: _B, count: int) -> _B:
    start = block._address_type(int(block.start_address) + count * block.size)
    return type(block)(start, block.size)


def _steps(start: _B, end: _B) -> int | None:
    if type(end) is not type(start) or end.size != start.size:
        raise ValueError("cannot count steps between blocks of different kinds or sizes")
    difference = int(end.start_address) - int(start.start_address)
    if difference < 0:
        return None
    if difference % start.size != 0:
        raise ValueError("blocks are not a whole number of steps apart")
    return difference // start.size


class Frame(_Block):
    """A frame of physical memory."""

    _address_type = PhysicalAddress

    @classmethod
    def starts_with(cls, address: PhysicalAddress, size: FrameSize = FrameSize.SIZE_4KIB) -> Frame:
        """The frame that starts at ``address``, which must be aligned to ``size``."""
        return _starting_at(cls, address, size)

    @classmethod
    def contains(cls, address: PhysicalAddress, size: FrameSize = FrameSize.SIZE_4KIB) -> Frame:
        """The frame that holds ``address``."""
        return _containing(cls, address, size)

    def __add__(self, count: int) -> Frame:
        if not isinstance(count, int):
            return NotImplemented
        return _advance(self, count)

    def steps_to(self, end: Frame) -> int | None:
        """The number of frames from this one up to ``end``, or ``None`` if ``end`` lies before it."""
        return _steps(self, end)


class Page(_Block):
    """A page of virtual memory."""

    _address_type = VirtualAddress

    @classmethod
    def starts_with(cls, address: VirtualAddress, size: FrameSize = FrameSize.SIZE_4KIB) -> Page:
        """The page that starts at ``address``, which must be aligned to ``size``."""
        return _starting_at(cls, address, size)

    @classmethod
    def contains(cls, address: VirtualAddress, size: FrameSize = FrameSize.SIZE_4KIB) -> Page:
        """The page that holds ``address``."""
        return _containing(cls, address, size)

    def __add__(self, count: int) -> Page:
        if not isinstance(count, int):
            return NotImplemented
        return _advance(self, count)

    def steps_to(self, end: Page) -> int | None:
        """The number of pages from this one up to ``end``, or ``None`` if ``end`` lies before it."""
        return _steps(self, end)


def _block_range(start: _B, end: _B) -> Iterator[_B]:
    for index in range(start.steps_to(end) or 0):
        yield start + index


def frame_range(start: Frame, end: Frame) -> Iterator[Frame]:
    """Yield the frames from ``start`` up to, but not including, ``end``."""
    return _block_range(start, end)


def page_range(start: Page, end: Page) -> Iterator[Page]:
    """Yield the pages from ``start`` up to, but not including, ``end``."""
    return _block_range(start, end)