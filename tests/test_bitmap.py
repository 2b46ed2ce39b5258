import pytest

from pebblekit.bitmap import Bitmap, ByteBitmap


@pytest.mark.parametrize(
    "value, width, n, expected",
    [
        (0b10001, 16, 3, 1),
        (0b11_0000_1_000_111, 16, 4, 7),
        (0b1111_1111, 8, 1, None),
        (0b0110_1010, 8, 2, None),
    ],
)
def test_bitmap(value, width, n, expected):
    assert Bitmap(value, width).alloc(n) == expected


def test_bitmap_sets_allocated_bits():
    bitmap = Bitmap(0b10001, 16)
    assert bitmap.alloc(3) == 1
    assert bitmap.value == 0b11111


def test_bitmap_failed_alloc_leaves_value():
    bitmap = Bitmap(0b0110_1010, 8)
    assert bitmap.alloc(2) is None
    assert int(bitmap) == 0b0110_1010


def test_bitmap_rejects_bad_run_length():
    with pytest.raises(ValueError):
        Bitmap(0, 8).alloc(0)
    with pytest.raises(ValueError):
        Bitmap(0, 8).alloc(9)


def test_bitmap_rejects_oversized_value():
    with pytest.raises(ValueError):
        Bitmap(0x100, 8)


@pytest.mark.parametrize(
    "data, n, expected",
    [
        ([0xFF, 0xFF, 0xFF, 0xFF, 0xFF], 3, None),
        ([0xFE, 0xFF, 0xFF, 0xFF], 1, 0),
        ([0b1111_0001, 0xFF, 0xFF], 3, 1),
        ([0b1111_1001, 0xFF, 0xFF], 3, None),
    ],
)
def test_bitmap_array_simple(data, n, expected):
    assert ByteBitmap(data).alloc(n) == expected


def test_bitmap_array_multiple():
    bitmap = ByteBitmap([0b1111_1100, 0xFF, 0xFF])

    assert bitmap.alloc(1) == 0
    assert bitmap.data == bytes([0b1111_1101, 0xFF, 0xFF])

    assert bitmap.alloc(1) == 1
    assert bitmap.data == bytes([0b1111_1111, 0xFF, 0xFF])

    assert bitmap.alloc(1) is None


def test_bitmap_array_does_not_alias_input():
    source = bytearray([0x00])
    bitmap = ByteBitmap(source)
    assert bitmap.alloc(1) == 0
    assert source == bytearray([0x00])