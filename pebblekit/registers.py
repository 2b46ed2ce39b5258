"""x86_64 register layouts: RFLAGS, CR4 bits and model-specific register numbers."""

from __future__ import annotations

from dataclasses import dataclass

CR4_RESTRICT_RDTSC = 2
"""If set, ``rdtsc`` can only be used in ring 0."""
CR4_ENABLE_PAE = 5
CR4_ENABLE_GLOBAL_PAGES = 7
CR4_XSAVE_ENABLE_BIT = 18

EFER = 0xC000_0080
EFER_ENABLE_SYSCALL = 0
EFER_ENABLE_LONG_MODE = 8
EFER_ENABLE_NX_BIT = 11

IA32_STAR = 0xC000_0081
"""Ring 0 (bits 32-47) and ring 3 (bits 48-63) code segment selectors for syscall/sysret."""
IA32_LSTAR = 0xC000_0082
"""The address of the handler called on ``syscall``."""
IA32_FMASK = 0xC000_0084
"""Bits set here are cleared in RFLAGS on ``syscall``."""
IA32_GS_BASE = 0xC000_0101
"""The base of the GS segment."""

_FLAG_LETTERS = (
    (11, "O"),
    (10, "D"),
    (9, "I"),
    (8, "T"),
    (7, "S"),
    (6, "Z"),
    (4, "A"),
    (2, "P"),
    (0, "C"),
)


@dataclass(frozen=True)
class CpuFlags:
    """A value of the RFLAGS register. ``str`` shows which flags are set."""

    value: int

    def _bit(self, bit: int) -> bool:
        return bool((self.value >> bit) & 1)

    def interrupts_enabled(self) -> bool:
        return self._bit(9)

    def __str__(self) -> str:
        nested = "N" if self._bit(14) else "-"
        io_privilege = str((self.value >> 12) & 0b11)
        letters = "".join(
            letter if self._bit(bit) else "-" for bit, letter in _FLAG_LETTERS
        )
        return f"[{nested}{io_privilege}{letters}] {self.value:#x}"