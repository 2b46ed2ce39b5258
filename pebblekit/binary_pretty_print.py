"""Render integers as byte-grouped binary strings."""


class BinaryPrettyPrint:
    """Wraps an integer of ``width`` bits for display as binary bytes.

    ``str`` gives ``00000000-00000000``; ``repr`` adds each byte's bit offset,
    as in ``00000000(8)-00000000(0)``.
    """

    def __init__(self, value: int, width: int) -> None:
        if width < 8 or width % 8 != 0:
            raise ValueError("width must be a positive multiple of 8 bits")
        self.value = value
        self.width = width

    def _bytes(self):
        masked = self.value & ((1 << self.width) - 1)
        for shift in range(self.width - 8, -1, -8):
            yield shift, (masked >> shift) & 0xFF

    def __str__(self) -> str:
        return "-".join(f"{byte:08b}" for _, byte in self._bytes())

    def __repr__(self) -> str:
        return "-".join(f"{byte:08b}({shift})" for shift, byte in self._bytes())