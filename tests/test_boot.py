import pytest

from pebblekit.addresses import FrameSize, PhysicalAddress, VirtualAddress
from pebblekit.boot import (
    BOOT_INFO_MAGIC,
    MAX_NAME_BYTES,
    NUM_IMAGES,
    NUM_MEMORY_MAP_ENTRIES,
    NUM_SEGMENTS_PER_IMAGE,
    BootInfo,
    ImageInfo,
    MemoryEntry,
    MemoryObjectInfo,
    MemoryType,
)
from pebblekit.frames import Frame
from pebblekit.page_table import EntryFlags


def test_default_memory_entry_is_empty_uefi_region():
    entry = MemoryEntry()
    assert entry.memory_type is MemoryType.UEFI_SERVICES
    assert entry.start == entry.end
    assert list(entry.frames()) == []


def test_memory_entry_frames():
    start = Frame.starts_with(PhysicalAddress(0x1000))
    end = start + 3
    entry = MemoryEntry(start, end, MemoryType.CONVENTIONAL)
    assert list(entry.frames()) == [start, start + 1, start + 2]


def test_memory_object_info_default_permissions():
    info = MemoryObjectInfo()
    assert info.permissions == EntryFlags.PRESENT
    assert int(info.physical_address) == 0


def test_image_segments_fill_up():
    image = ImageInfo(name="test_process")
    segments = [MemoryObjectInfo(num_pages=i + 1) for i in range(NUM_SEGMENTS_PER_IMAGE)]
    for segment in segments:
        image.add_segment(segment)
    assert image.segments() == tuple(segments)
    with pytest.raises(RuntimeError):
        image.add_segment(MemoryObjectInfo())
    assert len(image.segments()) == NUM_SEGMENTS_PER_IMAGE


def test_image_name_limits():
    image = ImageInfo(name="a" * MAX_NAME_BYTES)
    assert image.name_length == MAX_NAME_BYTES
    with pytest.raises(ValueError):
        ImageInfo(name="a" * (MAX_NAME_BYTES + 1))


def test_image_capability_stream_limit():
    with pytest.raises(ValueError):
        ImageInfo(capability_stream=bytes(33))


def test_boot_info_memory_map_capacity():
    info = BootInfo()
    assert info.magic == BOOT_INFO_MAGIC
    for _ in range(NUM_MEMORY_MAP_ENTRIES):
        info.add_memory_map_entry(MemoryEntry())
    assert len(info.memory_entries()) == NUM_MEMORY_MAP_ENTRIES
    with pytest.raises(RuntimeError):
        info.add_memory_map_entry(MemoryEntry())


def test_boot_info_images_capacity_and_order():
    info = BootInfo()
    images = [ImageInfo(name=f"image{i}") for i in range(NUM_IMAGES)]
    for image in images:
        info.add_image(image)
    assert [i.name for i in info.images()] == [i.name for i in images]
    with pytest.raises(RuntimeError):
        info.add_image(ImageInfo())


def test_image_entry_point_kept():
    entry = VirtualAddress(0x40_0000)
    image = ImageInfo(name="simple_fb", entry_point=entry)
    assert image.entry_point == entry
    assert Frame.contains(PhysicalAddress(0x1234), FrameSize.SIZE_4KIB).start_address == PhysicalAddress(0x1000)