"""Layout of the x86_64 kernel's virtual address space.

The 511th P4 entry covers the kernel: the physical memory mapping at its start,
the per-address-space kernel stacks directly below ``KERNEL_BASE``, and the
kernel image, heap and fixed pages in the top 2 GiB. Everything below it is
free for userspace.
"""

from __future__ import annotations

from pebblekit.addresses import MEBIBYTES_TO_BYTES, PhysicalAddress, VirtualAddress

STACK_SLOT_SIZE = 2 * MEBIBYTES_TO_BYTES
"""The size of a single kernel stack."""

MAX_TASKS_PER_ADDRESS_SPACE = 64
MAX_ADDRESS_SPACES = 1024

ADDRESS_SPACE_STACK_SLOT_SIZE = STACK_SLOT_SIZE * MAX_TASKS_PER_ADDRESS_SPACE
"""The size of the slot of stacks allocated for one address space."""

KERNEL_P4_ENTRY = 511
"""The kernel is mapped into the 511th entry of the P4."""

KERNEL_ADDRESS_SPACE_START = VirtualAddress(0xFFFF_FF80_0000_0000)

PHYSICAL_MAPPING_BASE = KERNEL_ADDRESS_SPACE_START
"""Physical memory is mapped at the start of the kernel's P4 entry."""

KERNEL_STACKS_BASE = VirtualAddress(0xFFFF_FFDF_8000_0000)

KERNEL_BASE = VirtualAddress(0xFFFF_FFFF_8000_0000)
"""The base of the kernel image, at -2 GiB."""

HEAP_START = VirtualAddress(0xFFFF_FFFF_C000_0000)
HEAP_END = VirtualAddress(0xFFFF_FFFF_C003_1FFF)

BOOT_INFO = VirtualAddress(0xFFFF_FFFF_D000_0000)

LOCAL_APIC_CONFIG = VirtualAddress(0xFFFF_FFFF_D000_1000)
"""Fixed mapping of the local APIC's configuration space."""


def kernel_stack_area_base(index: int) -> VirtualAddress:
    """The base of the kernel stack slot for the address space with the given index."""
    return KERNEL_STACKS_BASE + index * ADDRESS_SPACE_STACK_SLOT_SIZE


def physical_to_virtual(address: PhysicalAddress) -> VirtualAddress:
    """The address at which ``address`` can be reached through the kernel's physical mapping."""
    return PHYSICAL_MAPPING_BASE + int(address)