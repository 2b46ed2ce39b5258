# pebblekit

Pure-Python models of the low-level building blocks a small x86_64 kernel
needs. Everything works on plain Python values and byte strings, so it can be
used to inspect ELF binaries, check page-table layouts, decode `cpuid` results
or build descriptor tables as bytes.

It has no dependencies beyond the standard library.

## Installing

```
pip install pebblekit
```

For running the tests:

```
pip install "pebblekit[test]"
pytest
```

## What is inside

- `pebblekit.mathutil`: `flooring_log2`, `ceiling_log2`, `align_down`,
  `align_up` and `ceiling_integer_divide`. Alignments must be 0 or a power of
  two; other values raise `ValueError`.
- `pebblekit.bitmap`: `Bitmap(value, width)`, a fixed-width integer used as a
  bitmap, and `ByteBitmap(data)`, a byte sequence read as a little-endian
  bitmap (bit 0 is the lowest bit of the first byte). Both have `alloc(n)`,
  which finds `n` consecutive clear bits, sets them and returns the index of
  the first, or `None` if there is no such run.
- `pebblekit.binary_pretty_print`: `BinaryPrettyPrint(value, width)`; `str`
  gives `00000000-00000000`, `repr` adds each byte's bit offset, as in
  `00000000(8)-00000000(0)`.
- `pebblekit.once`: the `assert_first_call` decorator; any call after the
  first raises `RuntimeError`.
- `pebblekit.elf`: `Elf` parses and validates 64-bit little-endian ELF images,
  with `sections()`, `segments()`, `symbols()` and `entry_point()`.
  `SectionHeader`, `ProgramHeader` and `Symbol` decode their types, flags and
  names; `ProgramHeader.iterate_note_entries` and `iter_notes` yield
  `NoteEntry` values. Rejected images raise `ElfError`, whose `kind` is an
  `ElfErrorKind`.
- `pebblekit.addresses`: `PhysicalAddress` (below 2^52) and `VirtualAddress`
  (canonical) with alignment, canonicalisation and the `p4_index` ..
  `p1_index` helpers; `FrameSize` for 4 KiB and 2 MiB.
- `pebblekit.frames`: `Frame` and `Page` (`starts_with`, `contains`, `+`,
  `steps_to`), plus `frame_range` and `page_range`.
- `pebblekit.kernel_map`: constants for the kernel's virtual address-space
  layout, `kernel_stack_area_base` and `physical_to_virtual`.
- `pebblekit.page_table`: four-level page tables held in a simulated
  `PhysicalMemory`. `PageTable.mapper()` gives a `Mapper` with `map`,
  `map_to`, `map_to_2mib`, `unmap` and `translate`. Frames come from a
  `FrameAllocator` subclass you supply. Mapping over an existing mapping raises
  `AlreadyMappedError`; needing a table where a huge page is mapped raises
  `HugePageConflictError` (both are `MapError`).
- `pebblekit.gdt`: `SegmentSelector`, `code_segment`, `data_segment`, `Tss`,
  `TssSegment` and `Gdt`, all encodable to bytes.
- `pebblekit.idt`: `Vector`, `IdtEntry` and a 256-entry `Idt`, encodable to
  bytes.
- `pebblekit.registers`: `CpuFlags`, whose `str` shows the set RFLAGS bits,
  and constants for CR4 bits and model-specific registers.
- `pebblekit.boot`: `BootInfo`, `MemoryEntry`, `ImageInfo`,
  `MemoryObjectInfo`, `VideoInfo` and friends, with the same capacity limits
  enforced by `RuntimeError`.
- `pebblekit.cpu`: `CpuInfo.from_cpuid(cpuid)` decodes vendor, model,
  features and hypervisor information from a callable that maps a leaf number
  to a `CpuidResult`; `microarch()` and `apic_frequency()` interpret it.
- `pebblekit.caps`: `Capability`, `CapabilityKind`, `KernelObjectId` and
  `encode_capabilities_note`, which builds the `PEBBLE` note for an image's
  capability stream.

## Examples

```python
from pebblekit.addresses import VirtualAddress
from pebblekit.bitmap import Bitmap
from pebblekit.mathutil import align_up

address = VirtualAddress.from_page_table_offsets(511, 0, 0, 0, 0)
assert address.p4_index() == 511

bitmap = Bitmap(0b10001, 16)
assert bitmap.alloc(3) == 1

assert align_up(1023, 16) == 1024
```

Reading an ELF file:

```python
from pebblekit.elf import Elf

with open("program.elf", "rb") as handle:
    elf = Elf(handle.read())

print(hex(elf.entry_point()))
for section in elf.sections():
    print(section.name(elf), section.section_type())
```

Mapping a page:

```python
from pebblekit.addresses import PhysicalAddress, VirtualAddress
from pebblekit.frames import Frame, Page
from pebblekit.page_table import EntryFlags, FrameAllocator, PageTable, PhysicalMemory


class BumpAllocator(FrameAllocator):
    def __init__(self, first):
        self.next = first

    def allocate_n(self, n):
        start = self.next
        self.next = start + n
        return start, self.next

    def free_n(self, start, n):
        pass


allocator = BumpAllocator(Frame.starts_with(PhysicalAddress(0x10000)))
tables = PageTable(allocator.allocate(), PhysicalMemory())
mapper = tables.mapper()

page = Page.starts_with(VirtualAddress(0x4000_0000))
frame = mapper.map(page, EntryFlags.WRITABLE, allocator)
assert mapper.translate(page.start_address).frame == frame
```

## What it does not do

Nothing here runs on or talks to hardware. Tables are built as Python objects
and bytes but never loaded into a processor, page tables live in a simulated
`PhysicalMemory` rather than real memory, no TLB is flushed, and
`pebblekit.cpu` only decodes `cpuid` values that the caller supplies. There is
no command-line tool.