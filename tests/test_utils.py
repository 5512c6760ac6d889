import pytest

from dds_core import (
    Format,
    InvalidBufferLengthError,
    InvalidDimensionsError,
    native_size,
    rows_to_strip,
    strip_to_rows,
)
from dds_core.utils import canonical_pixel_count


def indexed_pixels(count):
    out = bytearray()
    for i in range(count):
        out += bytes([i, 0, 0, 255])
    return bytes(out)


def test_native_size():
    assert native_size(Format.L8, 4, 4) == 16
    assert native_size(Format.A4R4G4B4, 4, 4) == 32
    assert native_size(Format.A8R8G8B8, 2, 3) == 24
    assert native_size(Format.DXT1, 8, 8) == 32
    assert native_size(Format.DXT5, 6, 6) == 64
    with pytest.raises(ValueError):
        native_size(Format.UNKNOWN, 4, 4)


def test_canonical_pixel_count():
    assert canonical_pixel_count(bytes(12)) == 3
    with pytest.raises(InvalidBufferLengthError):
        canonical_pixel_count(bytes(5))


def test_strip_to_rows_single_column_is_identity():
    strip = indexed_pixels(32)
    assert strip_to_rows(strip, 4, 8) == strip


def test_strip_to_rows_and_back():
    strip = indexed_pixels(64)
    rows = strip_to_rows(strip, 8, 8)
    assert rows != strip
    assert rows_to_strip(rows, 8, 8) == strip


def test_strip_to_rows_order():
    # 8x8 image = 2x2 blocks; block 1 is the top-right one
    rows = strip_to_rows(indexed_pixels(64), 8, 8)
    first_row = [rows[i * 4] for i in range(8)]
    assert first_row == [0, 1, 2, 3, 16, 17, 18, 19]
    fifth_row = [rows[(4 * 8 + i) * 4] for i in range(8)]
    assert fifth_row == [32, 33, 34, 35, 48, 49, 50, 51]


def test_strip_requires_block_aligned_dimensions():
    with pytest.raises(InvalidDimensionsError):
        strip_to_rows(indexed_pixels(24), 6, 4)
    with pytest.raises(InvalidBufferLengthError):
        rows_to_strip(indexed_pixels(16), 8, 4)
