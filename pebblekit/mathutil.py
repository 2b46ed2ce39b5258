"""Integer helpers for alignment, logarithms and rounding division."""

_U64_LIMIT = 1 << 64


def _check_u64(x: int) -> None:
    if x < 0 or x >= _U64_LIMIT:
        raise ValueError(f"{x} is outside the range of a 64-bit unsigned integer")


def _is_power_of_two(x: int) -> bool:
    return x > 0 and x & (x - 1) == 0


def flooring_log2(x: int) -> int:
    """Return log2 of ``x``, rounded down to the lower power of two. ``x`` must not be 0."""
    _check_u64(x)
    if x == 0:
        raise ValueError("flooring_log2 is undefined for 0")
    return x.bit_length() - 1


def ceiling_log2(x: int) -> int:
    """Return log2 of ``x``, rounded up to the next power of two (0 for inputs 0 and 1)."""
    _check_u64(x)
    if x <= 1:
        return 0
    return (x - 1).bit_length()


def align_down(value: int, align: int) -> int:
    """Round ``value`` down to a multiple of ``align``, which must be 0 or a power of two."""
    if align != 0 and not _is_power_of_two(align):
        raise ValueError(f"alignment {align} is neither 0 nor a power of two")
    if align == 0:
        return value
    return value & ~(align - 1)


def align_up(value: int, align: int) -> int:
    """Round ``value`` up to a multiple of ``align``, which must be 0 or a power of two."""
    if align == 0:
        return value
    return align_down(value + align - 1, align)


def ceiling_integer_divide(x: int, divide_by: int) -> int:
    """Divide ``x`` by ``divide_by``, taking the ceiling if it does not divide evenly."""
    quotient, remainder = divmod(x, divide_by)
    return quotient + (1 if remainder != 0 else 0)