"""Parsing of 64-bit little-endian ELF images: header, sections, segments, symbols and notes."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Iterator

ELF_MAGIC = b"\x7fELF"

_HEADER = struct.Struct("<4sBBBBB7xHHIQQQIHHHHHH")
_PROGRAM_HEADER = struct.Struct("<IIQQQQQQ")
_SECTION_HEADER = struct.Struct("<IIQQQQIIQQ")
_SYMBOL = struct.Struct("<IBBHQQ")
_NOTE_HEADER = struct.Struct("<III")

_OS_RANGE = range(0x6000_0000, 0x7000_0000)
_PROC_RANGE = range(0x7000_0000, 0x8000_0000)


class ElfErrorKind(enum.Enum):
    """The ways in which an ELF image can be rejected."""

    TOO_SHORT = "the byte stream is too short to be a valid ELF"
    MALFORMED_HEADER = "the header is malformed"
    INCORRECT_MAGIC = "the magic number is incorrect"
    SECTION_INVALID_TYPE = "a section has an invalid type"
    INVALID_SYMBOL_TABLE = "the .symtab section is not a symbol table"
    SEGMENT_INVALID_TYPE = "a segment has an invalid type"


class ElfError(ValueError):
    """Raised when an ELF image is rejected; ``kind`` says why."""

    def __init__(self, kind: ElfErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


def _unpack(layout: struct.Struct, data: bytes, offset: int) -> tuple:
    try:
        return layout.unpack_from(data, offset)
    except struct.error as exc:
        raise ValueError("failed to read table / header") from exc


def _slice(data: bytes, offset: int, size: int) -> bytes:
    end = offset + size
    if offset > len(data) or end > len(data):
        raise ValueError(f"range {offset:#x}..{end:#x} lies outside the image")
    return data[offset:end]


def _null_terminated_str(data: bytes) -> str | None:
    try:
        return data.split(b"\0", 1)[0].decode("utf-8")
    except UnicodeDecodeError:
        return None


def _string_at(table: bytes, offset: int) -> str | None:
    if offset > len(table):
        raise ValueError(f"string offset {offset:#x} lies outside its string table")
    return _null_terminated_str(table[offset:])


@dataclass(frozen=True)
class Header:
    """The ELF file header."""

    magic: bytes
    elf_class: int
    data_encoding: int
    header_version: int
    abi: int
    abi_version: int
    file_type: int
    machine_type: int
    version: int
    entry_point: int
    program_header_offset: int
    section_header_offset: int
    flags: int
    header_size: int
    program_header_entry_size: int
    number_of_program_headers: int
    section_header_entry_size: int
    number_of_section_headers: int
    string_table_index: int

    SIZE = _HEADER.size

    @classmethod
    def parse(cls, data: bytes) -> Header:
        """Read a header from the start of ``data``."""
        try:
            fields = _HEADER.unpack_from(data, 0)
        except struct.error as exc:
            raise ElfError(ElfErrorKind.MALFORMED_HEADER) from exc
        return cls(*fields)

    def validate(self) -> None:
        """Raise ``ElfError`` if the magic number is wrong."""
        if self.magic != ELF_MAGIC:
            raise ElfError(ElfErrorKind.INCORRECT_MAGIC)


@dataclass(frozen=True)
class NoteEntry:
    """One entry of a note segment or section."""

    name: bytes
    entry_type: int
    desc: bytes


def _align_up(offset: int, alignment: int) -> int:
    remainder = offset % alignment
    return offset if remainder == 0 else offset + alignment - remainder


def iter_notes(data: bytes) -> Iterator[NoteEntry]:
    """Yield the note entries in ``data``, stopping at the first incomplete one."""
    data = bytes(data)
    while len(data) >= _NOTE_HEADER.size:
        name_size, desc_size, entry_type = _NOTE_HEADER.unpack_from(data, 0)
        desc_offset = _align_up(12 + name_size, 4)
        next_entry_offset = _align_up(desc_offset + desc_size, 4)
        if len(data) < next_entry_offset:
            return
        yield NoteEntry(
            name=data[12 : 12 + name_size],
            entry_type=entry_type,
            desc=data[desc_offset : desc_offset + desc_size],
        )
        data = data[next_entry_offset:]


class SegmentType(enum.Enum):
    NULL = enum.auto()
    LOAD = enum.auto()
    DYNAMIC = enum.auto()
    INTERP = enum.auto()
    NOTE = enum.auto()
    SHLIB = enum.auto()
    PHDR = enum.auto()
    OS = enum.auto()
    PROC = enum.auto()


_SEGMENT_TYPES = [
    SegmentType.NULL,
    SegmentType.LOAD,
    SegmentType.DYNAMIC,
    SegmentType.INTERP,
    SegmentType.NOTE,
    SegmentType.SHLIB,
    SegmentType.PHDR,
]


@dataclass(frozen=True)
class ProgramHeader:
    """A program header describing one segment. ``type_value`` is the raw segment type."""

    type_value: int
    flags: int
    offset: int
    virtual_address: int
    physical_address: int
    file_size: int
    mem_size: int
    alignment: int

    @classmethod
    def parse(cls, data: bytes, offset: int) -> ProgramHeader:
        return cls(*_unpack(_PROGRAM_HEADER, data, offset))

    def validate(self) -> None:
        if not (
            self.type_value < len(_SEGMENT_TYPES)
            or self.type_value in _OS_RANGE
            or self.type_value in _PROC_RANGE
        ):
            raise ElfError(ElfErrorKind.SEGMENT_INVALID_TYPE)

    def segment_type(self) -> SegmentType:
        if self.type_value < len(_SEGMENT_TYPES):
            return _SEGMENT_TYPES[self.type_value]
        if self.type_value in _OS_RANGE:
            return SegmentType.OS
        if self.type_value in _PROC_RANGE:
            return SegmentType.PROC
        raise ValueError(f"segment has invalid type {self.type_value:#x}")

    def data(self, elf: Elf) -> bytes:
        return _slice(elf.data, self.offset, self.file_size)

    def is_executable(self) -> bool:
        return bool(self.flags & 0b001)

    def is_writable(self) -> bool:
        return bool(self.flags & 0b010)

    def is_readable(self) -> bool:
        return bool(self.flags & 0b100)

    def iterate_note_entries(self, elf: Elf) -> Iterator[NoteEntry] | None:
        """Iterate the entries of a note segment, or return ``None`` for any other segment."""
        if self.segment_type() is not SegmentType.NOTE:
            return None
        return iter_notes(self.data(elf))


class SectionType(enum.Enum):
    NULL = enum.auto()
    PROG_BITS = enum.auto()
    SYM_TAB = enum.auto()
    STR_TAB = enum.auto()
    RELA = enum.auto()
    HASH = enum.auto()
    DYNAMIC = enum.auto()
    NOTE = enum.auto()
    NO_BITS = enum.auto()
    REL = enum.auto()
    SH_LIB = enum.auto()
    DYN_SYM = enum.auto()
    OS = enum.auto()
    PROC = enum.auto()


_SECTION_TYPES = [
    SectionType.NULL,
    SectionType.PROG_BITS,
    SectionType.SYM_TAB,
    SectionType.STR_TAB,
    SectionType.RELA,
    SectionType.HASH,
    SectionType.DYNAMIC,
    SectionType.NOTE,
    SectionType.NO_BITS,
    SectionType.REL,
    SectionType.SH_LIB,
    SectionType.DYN_SYM,
]


@dataclass(frozen=True)
class SectionHeader:
    """A section header. ``name_offset`` indexes the section-name string table."""

    name_offset: int
    type_value: int
    flags: int
    address: int
    offset: int
    size: int
    link: int
    info: int
    alignment: int
    entry_size: int

    @classmethod
    def parse(cls, data: bytes, offset: int) -> SectionHeader:
        return cls(*_unpack(_SECTION_HEADER, data, offset))

    def validate(self) -> None:
        if not (
            self.type_value < len(_SECTION_TYPES)
            or self.type_value in _OS_RANGE
            or self.type_value in _PROC_RANGE
        ):
            raise ElfError(ElfErrorKind.SECTION_INVALID_TYPE)

    def section_type(self) -> SectionType:
        if self.type_value < len(_SECTION_TYPES):
            return _SECTION_TYPES[self.type_value]
        if self.type_value in _OS_RANGE:
            return SectionType.OS
        if self.type_value in _PROC_RANGE:
            return SectionType.PROC
        raise ValueError(f"section has invalid type {self.type_value:#x}")

    def name(self, elf: Elf) -> str | None:
        if self.name_offset == 0:
            return None
        string_table = elf.section_at(elf.header.string_table_index)
        if string_table is None:
            return None
        table_data = string_table.data(elf)
        if table_data is None:
            return None
        return _string_at(table_data, self.name_offset)

    def data(self, elf: Elf) -> bytes | None:
        """This section's bytes, or ``None`` if it has none in the file (null or no-bits)."""
        if self.section_type() in (SectionType.NULL, SectionType.NO_BITS):
            return None
        return _slice(elf.data, self.offset, self.size)

    def is_writable(self) -> bool:
        return bool(self.flags & 0b001)

    def is_allocated(self) -> bool:
        return bool(self.flags & 0b010)

    def is_executable(self) -> bool:
        return bool(self.flags & 0b100)


class SymbolBinding(enum.Enum):
    LOCAL = enum.auto()
    GLOBAL = enum.auto()
    WEAK = enum.auto()
    OS = enum.auto()
    PROC = enum.auto()


class SymbolType(enum.Enum):
    NO_TYPE = enum.auto()
    OBJECT = enum.auto()
    FUNC = enum.auto()
    SECTION = enum.auto()
    FILE = enum.auto()
    OS = enum.auto()
    PROC = enum.auto()


def _classify(value: int, known: list, os_member, proc_member, what: str):
    if value < len(known):
        return known[value]
    if 10 <= value <= 12:
        return os_member
    if 13 <= value <= 15:
        return proc_member
    raise ValueError(f"invalid symbol {what}: {value}")


@dataclass(frozen=True)
class Symbol:
    """An entry of the symbol table. A ``name_offset`` of 0 means the symbol has no name."""

    name_offset: int
    info: int
    other: int
    section_table_index: int
    value: int
    size: int

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Symbol:
        return cls(*_unpack(_SYMBOL, data, offset))

    def binding(self) -> SymbolBinding:
        known = [SymbolBinding.LOCAL, SymbolBinding.GLOBAL, SymbolBinding.WEAK]
        return _classify(
            (self.info >> 4) & 0xF, known, SymbolBinding.OS, SymbolBinding.PROC, "binding"
        )

    def symbol_type(self) -> SymbolType:
        known = [
            SymbolType.NO_TYPE,
            SymbolType.OBJECT,
            SymbolType.FUNC,
            SymbolType.SECTION,
            SymbolType.FILE,
        ]
        return _classify(self.info & 0xF, known, SymbolType.OS, SymbolType.PROC, "type")

    def name(self, elf: Elf) -> str | None:
        if self.name_offset == 0:
            return None
        if elf.symbol_table is None:
            raise ValueError("the ELF has no symbol table")
        string_table = elf.section_at(elf.symbol_table.link)
        if string_table is None:
            raise ValueError("the symbol table links to a missing string table")
        if string_table.section_type() is not SectionType.STR_TAB:
            return None
        table_data = string_table.data(elf)
        if table_data is None:
            return None
        return _string_at(table_data, self.name_offset)


class Elf:
    """A parsed and validated ELF image."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        if len(self.data) < Header.SIZE:
            raise ElfError(ElfErrorKind.TOO_SHORT)

        self.header = Header.parse(self.data)
        self.header.validate()
        self.symbol_table: SectionHeader | None = None

        for section in self.sections():
            section.validate()
        for segment in self.segments():
            segment.validate()

        symbol_table = next(
            (s for s in self.sections() if s.name(self) == ".symtab"), None
        )
        if symbol_table is not None and symbol_table.section_type() is not SectionType.SYM_TAB:
            raise ElfError(ElfErrorKind.INVALID_SYMBOL_TABLE)
        self.symbol_table = symbol_table

    def _entries(self, kind, offset: int, count: int, entry_size: int):
        table = _slice(self.data, offset, count * entry_size)
        return (kind.parse(table, index * entry_size) for index in range(count))

    def sections(self) -> Iterator[SectionHeader]:
        """Iterate the section headers."""
        return self._entries(
            SectionHeader,
            self.header.section_header_offset,
            self.header.number_of_section_headers,
            self.header.section_header_entry_size,
        )

    def section_at(self, index: int) -> SectionHeader | None:
        """The section header at ``index``, or ``None`` if there is none."""
        return next((s for i, s in enumerate(self.sections()) if i == index), None)

    def segments(self) -> Iterator[ProgramHeader]:
        """Iterate the program headers."""
        return self._entries(
            ProgramHeader,
            self.header.program_header_offset,
            self.header.number_of_program_headers,
            self.header.program_header_entry_size,
        )

    def symbols(self) -> Iterator[Symbol]:
        """Iterate the symbol table, which is empty if the image has none."""
        if self.symbol_table is None:
            return iter(())
        table_data = self.symbol_table.data(self)
        if table_data is None:
            return iter(())
        entry_size = self.symbol_table.entry_size
        count = self.symbol_table.size // entry_size
        return (Symbol.parse(table_data, index * entry_size) for index in range(count))

    def entry_point(self) -> int:
        return self.header.entry_point