"""Task capabilities, kernel object ids and the capability note carried by task images."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

CAPS_NOTE_OWNER = b"PEBBLE"
CAPS_NOTE_TYPE = 0
_NOTE_HEADER = struct.Struct("<III")


class CapabilityKind(enum.Enum):
    CREATE_ADDRESS_SPACE = enum.auto()
    CREATE_MEMORY_OBJECT = enum.auto()
    CREATE_TASK = enum.auto()
    X86_64_ACCESS_IO_PORT = enum.auto()
    MAP_FRAMEBUFFER = enum.auto()
    EARLY_LOGGING = enum.auto()


@dataclass(frozen=True)
class Capability:
    """A capability; ``port`` is given for, and only for, I/O port access."""

    kind: CapabilityKind
    port: int | None = None

    def __post_init__(self) -> None:
        if self.kind is CapabilityKind.X86_64_ACCESS_IO_PORT:
            if self.port is None or not 0 <= self.port <= 0xFFFF:
                raise ValueError("I/O port access needs a 16-bit port number")
        elif self.port is not None:
            raise ValueError(f"{self.kind.name} does not take a port")


@dataclass(frozen=True)
class KernelObjectId:
    """Identifies a kernel object by its slot index and the generation of that slot."""

    index: int
    generation: int

    def __post_init__(self) -> None:
        for name in ("index", "generation"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"{name} {value} does not fit in 16 bits")


def _pad4(data: bytes) -> bytes:
    return data + bytes(-len(data) % 4)


def encode_capabilities_note(desc: bytes) -> bytes:
    """Encode a capability stream as the note entry placed in an image's ``.caps`` section.

    The owner is ``PEBBLE`` and both the owner and ``desc`` are zero-padded to 4-byte boundaries.
    """
    desc = bytes(desc)
    header = _NOTE_HEADER.pack(len(CAPS_NOTE_OWNER), len(desc), CAPS_NOTE_TYPE)
    return header + _pad4(CAPS_NOTE_OWNER + b"\0") + _pad4(desc)