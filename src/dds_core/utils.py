"""Shared helpers: buffer sizing and block strip reshaping"""

import numpy as np

from .errors import InvalidBufferLengthError, InvalidDimensionsError
from .formats import Format

CANONICAL_BYTES_PER_PIXEL = 4


def canonical_pixel_count(canonical: bytes) -> int:
    """Number of pixels in a canonical BGRA buffer"""
    if len(canonical) % CANONICAL_BYTES_PER_PIXEL:
        raise InvalidBufferLengthError(len(canonical), CANONICAL_BYTES_PER_PIXEL, "canonical buffer")
    return len(canonical) // CANONICAL_BYTES_PER_PIXEL


def native_size(fmt: Format, width: int, height: int) -> int:
    """
    Size in bytes of a width x height image in the native encoding of fmt.

    Raises:
        ValueError: For formats without a known size (UNKNOWN)
    """
    if fmt.is_compressed:
        return ((width + 3) // 4) * ((height + 3) // 4) * fmt.block_size
    if fmt.bytes_per_pixel is None:
        raise ValueError(f"Format {fmt.name} has no defined native size")
    return width * height * fmt.bytes_per_pixel


def _check_block_aligned(canonical: bytes, width: int, height: int):
    if width <= 0 or height <= 0 or width % 4 or height % 4:
        raise InvalidDimensionsError(
            f"Block strips need dimensions that are multiples of 4, got {width}x{height}"
        )
    if len(canonical) != width * height * CANONICAL_BYTES_PER_PIXEL:
        raise InvalidBufferLengthError(
            len(canonical), width * height * CANONICAL_BYTES_PER_PIXEL, "canonical buffer"
        )


def strip_to_rows(canonical: bytes, width: int, height: int) -> bytes:
    """
    Reorder pixels decoded as a 4-pixel-wide block strip into a row-major image.

    The strip holds one 4x4 block per 16 pixels, in block stream order
    (left to right, then top to bottom across the real image).
    """
    _check_block_aligned(canonical, width, height)
    blocks_x = width // 4
    blocks_y = height // 4
    arr = np.frombuffer(canonical, dtype=np.uint8).reshape(blocks_y, blocks_x, 4, 4, 4)
    return arr.transpose(0, 2, 1, 3, 4).tobytes()


def rows_to_strip(canonical: bytes, width: int, height: int) -> bytes:
    """Inverse of strip_to_rows: split a row-major image into a 4-pixel-wide block strip"""
    _check_block_aligned(canonical, width, height)
    blocks_x = width // 4
    blocks_y = height // 4
    arr = np.frombuffer(canonical, dtype=np.uint8).reshape(blocks_y, 4, blocks_x, 4, 4)
    return arr.transpose(0, 2, 1, 3, 4).tobytes()
