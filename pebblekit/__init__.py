"""Pure-Python models of kernel building blocks: ELF images, x86_64 addresses, paging,
descriptor tables, boot information, cpuid decoding and bitmap utilities."""

__version__ = "0.1.0"