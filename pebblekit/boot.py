"""Information handed from the bootloader to the kernel: memory map, loaded images and video mode."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator

from pebblekit.addresses import PhysicalAddress, VirtualAddress
from pebblekit.frames import Frame, frame_range
from pebblekit.page_table import EntryFlags

BOOT_INFO_MAGIC = 0xCAFEBABE
NUM_MEMORY_MAP_ENTRIES = 64
NUM_IMAGES = 16
NUM_SEGMENTS_PER_IMAGE = 3
"""Each image has at most three segments: read-only, read+write and read+execute."""
MAX_CAPABILITY_BYTES_PER_IMAGE = 32
MAX_NAME_BYTES = 32
"""The most bytes a task's name may take when encoded as UTF-8."""


class MemoryType(enum.Enum):
    """What a region of the memory map is used for."""

    UEFI_SERVICES = enum.auto()
    CONVENTIONAL = enum.auto()
    ACPI_RECLAIMABLE = enum.auto()
    SLEEP_PRESERVE = enum.auto()
    NON_VOLATILE_SLEEP_PRESERVE = enum.auto()
    KERNEL_IMAGE = enum.auto()
    LOADED_IMAGE = enum.auto()
    KERNEL_PAGE_TABLES = enum.auto()
    KERNEL_HEAP = enum.auto()
    BOOT_INFO = enum.auto()


def _frame_zero() -> Frame:
    return Frame.contains(PhysicalAddress(0))


@dataclass(frozen=True)
class MemoryEntry:
    """A region of usable memory: the frames from ``start`` up to, but not including, ``end``."""

    start: Frame = field(default_factory=_frame_zero)
    end: Frame = field(default_factory=_frame_zero)
    memory_type: MemoryType = MemoryType.UEFI_SERVICES

    def frames(self) -> Iterator[Frame]:
        return frame_range(self.start, self.end)


@dataclass(frozen=True)
class MemoryObjectInfo:
    """A memory region that the kernel should represent as a memory object."""

    physical_address: PhysicalAddress = field(default_factory=lambda: PhysicalAddress(0))
    virtual_address: VirtualAddress = field(default_factory=lambda: VirtualAddress(0))
    num_pages: int = 0
    permissions: EntryFlags = EntryFlags.PRESENT


@dataclass
class ImageInfo:
    """An image loaded by the bootloader, to be turned into a task by the kernel."""

    name: str = ""
    entry_point: VirtualAddress = field(default_factory=lambda: VirtualAddress(0))
    capability_stream: bytes = b""
    _segments: list[MemoryObjectInfo] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if len(self.name.encode("utf-8")) > MAX_NAME_BYTES:
            raise ValueError(f"image name is longer than {MAX_NAME_BYTES} bytes of UTF-8")
        if len(self.capability_stream) > MAX_CAPABILITY_BYTES_PER_IMAGE:
            raise ValueError(
                f"capability stream is longer than {MAX_CAPABILITY_BYTES_PER_IMAGE} bytes"
            )
        if len(self._segments) > NUM_SEGMENTS_PER_IMAGE:
            raise ValueError(f"an image has at most {NUM_SEGMENTS_PER_IMAGE} segments")

    @property
    def name_length(self) -> int:
        """The length of the name in bytes of UTF-8."""
        return len(self.name.encode("utf-8"))

    def add_segment(self, segment: MemoryObjectInfo) -> None:
        if len(self._segments) == NUM_SEGMENTS_PER_IMAGE:
            raise RuntimeError("run out of space for segments in the ImageInfo")
        self._segments.append(segment)

    def segments(self) -> tuple[MemoryObjectInfo, ...]:
        return tuple(self._segments)


class PixelFormat(enum.IntEnum):
    """The layout of a 4-byte pixel in the framebuffer."""

    RGB32 = 0
    """Bytes are red, green, blue, reserved."""
    BGR32 = 1
    """Bytes are blue, green, red, reserved."""


@dataclass(frozen=True)
class VideoInfo:
    framebuffer_address: PhysicalAddress
    pixel_format: PixelFormat
    width: int
    height: int
    stride: int


@dataclass
class BootInfo:
    """What the bootloader discovered and set up. The memory map only lists usable memory."""

    magic: int = BOOT_INFO_MAGIC
    rsdp_address: PhysicalAddress | None = None
    video_info: VideoInfo | None = None
    _memory_map: list[MemoryEntry] = field(default_factory=list, repr=False)
    _images: list[ImageInfo] = field(default_factory=list, repr=False)

    def memory_entries(self) -> tuple[MemoryEntry, ...]:
        return tuple(self._memory_map)

    def add_memory_map_entry(self, entry: MemoryEntry) -> None:
        if len(self._memory_map) == NUM_MEMORY_MAP_ENTRIES:
            raise RuntimeError("run out of space for memory map entries in the BootInfo")
        self._memory_map.append(entry)

    def images(self) -> tuple[ImageInfo, ...]:
        return tuple(self._images)

    def add_image(self, image: ImageInfo) -> None:
        if len(self._images) == NUM_IMAGES:
            raise RuntimeError("run out of space for loaded images in the BootInfo")
        self._images.append(image)