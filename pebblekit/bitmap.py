"""Bitmaps that hand out runs of free (zero) bits, as used to track free pages or frames."""

from __future__ import annotations


def _alloc_run(value: int, num_bits: int, n: int) -> tuple[int | None, int]:
    """Find ``n`` consecutive zero bits in ``value``, returning their index and the new value."""
    if n < 1 or n > num_bits:
        raise ValueError(f"cannot allocate {n} bits from a bitmap of {num_bits} bits")
    mask = (1 << n) - 1
    # Positions are tried while a full run of n bits still fits strictly before the end.
    for i in range(num_bits - n):
        if (value >> i) & mask == 0:
            return i, value | (mask << i)
    return None, value


class Bitmap:
    """An integer of ``width`` bits viewed as a series of bits, bit 0 being the least significant."""

    def __init__(self, value: int, width: int) -> None:
        if width < 1:
            raise ValueError("bitmap width must be positive")
        if value < 0 or value >= 1 << width:
            raise ValueError(f"{value} does not fit in {width} bits")
        self.value = value
        self.width = width

    def alloc(self, n: int) -> int | None:
        """Find ``n`` consecutive unset bits, set them and return the index of the first one."""
        index, self.value = _alloc_run(self.value, self.width, n)
        return index

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"Bitmap({self.value:#b}, width={self.width})"


class ByteBitmap:
    """A byte sequence viewed as a little-endian bitmap: bit 0 is the LSB of the first byte."""

    def __init__(self, data: bytes | bytearray | list[int]) -> None:
        self._data = bytearray(data)

    @property
    def data(self) -> bytes:
        return bytes(self._data)

    def alloc(self, n: int) -> int | None:
        """Find ``n`` consecutive unset bits, set them and return the index of the first one."""
        num_bits = 8 * len(self._data)
        value = int.from_bytes(self._data, "little")
        index, value = _alloc_run(value, num_bits, n)
        if index is not None:
            self._data[:] = value.to_bytes(len(self._data), "little")
        return index

    def __repr__(self) -> str:
        return f"ByteBitmap({self.data!r})"