"""
Pixel conversion between native DDS encodings and canonical BGRA.

Canonical buffers are 4 bytes per pixel in blue, green, red, alpha order,
row-major with no padding. Native buffers use the stride of their format
(1, 2 or 4 bytes per pixel), or 4x4 blocks for DXT1/DXT3/DXT5.

Each supported format has a (decoder, encoder) pair in _CONVERTERS. The
16-bit layouts expand narrow channels by left shift only, so 4-bit 0xF
decodes to 0xF0 and 5-bit 0x1F to 0xF8.

Block-compressed formats are handed to a BlockCodec as a strip that is
TILE_WIDTH (4) pixels wide and as tall as the data requires. Without the
real image width, decoded pixels come back in block order; pass width= to
get a row-major image instead.
"""

import logging
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .block_codec import DEFAULT_BLOCK_CODEC, BlockCodec, BlockFormat
from .errors import InvalidBufferLengthError, InvalidDimensionsError, UnsupportedFormatError
from .formats import Format
from .settings import DEFAULT_SETTINGS, CodecSettings
from .utils import CANONICAL_BYTES_PER_PIXEL, canonical_pixel_count, rows_to_strip, strip_to_rows

logger = logging.getLogger(__name__)

# Canonical channel offsets
B, G, R, A = 0, 1, 2, 3

# Pixels per 4x4 block
BLOCK_PIXELS = 16

# Width of the strip handed to the block codec
TILE_WIDTH = 4


def _pixels(canonical: bytes) -> np.ndarray:
    return np.frombuffer(canonical, dtype=np.uint8).reshape(-1, CANONICAL_BYTES_PER_PIXEL)


def _words(native: bytes) -> np.ndarray:
    return np.frombuffer(native, dtype='<u2').astype(np.uint16)


def _to_canonical(b, g, r, a) -> bytes:
    return np.stack([b, g, r, a], axis=-1).astype(np.uint8).tobytes()


# ---------------------------------------------------------------------------
# L8
# ---------------------------------------------------------------------------

def _decode_l8(native: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    lum = np.frombuffer(native, dtype=np.uint8)
    return _to_canonical(lum, lum, lum, np.full_like(lum, 255))


def _encode_l8(canonical: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    # Lossy: keeps byte 0 of each pixel
    return _pixels(canonical)[:, 0].tobytes()


# ---------------------------------------------------------------------------
# A8
# ---------------------------------------------------------------------------

def _decode_a8(native: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    alpha = np.frombuffer(native, dtype=np.uint8)
    zero = np.zeros_like(alpha)
    return _to_canonical(zero, zero, zero, alpha)


def _encode_a8(canonical: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    if settings.legacy_a8_encode:
        logger.warning("A8 encode is reading byte 0 instead of alpha (legacy_a8_encode)")
        return _pixels(canonical)[:, 0].tobytes()
    return _pixels(canonical)[:, A].tobytes()


# ---------------------------------------------------------------------------
# A4R4G4B4 (16-bit: aaaa rrrr gggg bbbb)
# ---------------------------------------------------------------------------

def _decode_a4r4g4b4(native: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    v = _words(native)
    return _to_canonical(
        (v & 0x000F) << 4,
        v & 0x00F0,
        (v >> 4) & 0x00F0,
        (v >> 8) & 0x00F0,
    )


def _encode_a4r4g4b4(canonical: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    p = _pixels(canonical).astype(np.uint16)
    v = (p[:, B] >> 4) | (p[:, G] & 0xF0) | ((p[:, R] >> 4) << 8) | ((p[:, A] & 0xF0) << 8)
    return v.astype('<u2').tobytes()


# ---------------------------------------------------------------------------
# A1R5G5B5 (16-bit: a rrrrr ggggg bbbbb)
# ---------------------------------------------------------------------------

def _decode_a1r5g5b5(native: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    v = _words(native)
    return _to_canonical(
        (v & 0x1F) << 3,
        ((v >> 5) & 0x1F) << 3,
        ((v >> 10) & 0x1F) << 3,
        (v >> 15) << 7,
    )


def _encode_a1r5g5b5(canonical: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    p = _pixels(canonical).astype(np.uint16)
    v = ((p[:, B] >> 3)
         | ((p[:, G] >> 3) << 5)
         | ((p[:, R] >> 3) << 10)
         | ((p[:, A] >> 7) << 15))
    return v.astype('<u2').tobytes()


# ---------------------------------------------------------------------------
# A8R8G8B8 / X8R8G8B8
# ---------------------------------------------------------------------------

def _copy(data: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    return bytes(data)


def _decode_x8r8g8b8(native: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    p = _pixels(native).copy()
    p[:, A] = 255
    return p.tobytes()


def _encode_x8r8g8b8(canonical: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
    p = _pixels(canonical).copy()
    p[:, A] = 0
    return p.tobytes()


# ---------------------------------------------------------------------------
# DXT1 / DXT3 / DXT5
# ---------------------------------------------------------------------------

def _compressed(block_format: BlockFormat) -> Tuple[Callable, Callable]:
    def decode(native: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
        if not native:
            return b''
        num_blocks = len(native) // block_format.block_size
        height = num_blocks * BLOCK_PIXELS // TILE_WIDTH
        return block_codec.decompress(block_format, TILE_WIDTH, height, native)

    def encode(canonical: bytes, settings: CodecSettings, block_codec: BlockCodec) -> bytes:
        if not canonical:
            return b''
        height = len(canonical) // (TILE_WIDTH * CANONICAL_BYTES_PER_PIXEL)
        return block_codec.compress(block_format, TILE_WIDTH, height, canonical, settings.compression)

    return decode, encode


_CONVERTERS: Dict[Format, Tuple[Callable, Callable]] = {
    Format.L8: (_decode_l8, _encode_l8),
    Format.A8: (_decode_a8, _encode_a8),
    Format.A4R4G4B4: (_decode_a4r4g4b4, _encode_a4r4g4b4),
    Format.A1R5G5B5: (_decode_a1r5g5b5, _encode_a1r5g5b5),
    Format.A8R8G8B8: (_copy, _copy),
    Format.X8R8G8B8: (_decode_x8r8g8b8, _encode_x8r8g8b8),
    Format.DXT1: _compressed(BlockFormat.BC1),
    Format.DXT3: _compressed(BlockFormat.BC2),
    Format.DXT5: _compressed(BlockFormat.BC3),
}


def _converters(fmt: Format) -> Tuple[Callable, Callable]:
    try:
        return _CONVERTERS[fmt]
    except KeyError:
        raise UnsupportedFormatError(fmt, recognized=fmt is not Format.UNKNOWN) from None


def _check_width(fmt: Format, pixel_count: int, width: Optional[int]):
    if width is None:
        return
    if width <= 0:
        raise InvalidDimensionsError(f"Width must be positive, got {width}")
    if fmt.is_compressed and width % 4:
        raise InvalidDimensionsError(
            f"{fmt.name} requires a width that is a multiple of 4, got {width}"
        )
    if pixel_count % width:
        raise InvalidBufferLengthError(
            pixel_count * CANONICAL_BYTES_PER_PIXEL, width * CANONICAL_BYTES_PER_PIXEL, "image row"
        )


def decode_to_canonical(fmt: Format, native: bytes, *, width: Optional[int] = None,
                        settings: Optional[CodecSettings] = None,
                        block_codec: Optional[BlockCodec] = None) -> bytes:
    """
    Convert native pixel data to canonical BGRA.

    Args:
        fmt: Pixel format of the native data
        native: Native pixel bytes (whole pixels, or whole 4x4 blocks)
        width: Real image width, if known. For DXT formats this must be a
               multiple of 4 and the result is reordered row-major.
        settings: Codec settings (defaults to CodecSettings())
        block_codec: Block compression backend (defaults to PillowBlockCodec)

    Returns:
        Canonical BGRA bytes

    Raises:
        UnsupportedFormatError: For UNKNOWN or formats without a decoder
        InvalidBufferLengthError: If native is not whole pixels/blocks
        InvalidDimensionsError: If width violates the tiling precondition
    """
    decoder, _ = _converters(fmt)
    settings = settings or DEFAULT_SETTINGS
    block_codec = block_codec or DEFAULT_BLOCK_CODEC

    if fmt.is_compressed:
        if len(native) % fmt.block_size:
            raise InvalidBufferLengthError(len(native), fmt.block_size, f"{fmt.name} data")
        pixel_count = len(native) // fmt.block_size * BLOCK_PIXELS
    else:
        if len(native) % fmt.bytes_per_pixel:
            raise InvalidBufferLengthError(len(native), fmt.bytes_per_pixel, f"{fmt.name} data")
        pixel_count = len(native) // fmt.bytes_per_pixel
    _check_width(fmt, pixel_count, width)
    if fmt.is_compressed and width is not None and pixel_count // width % 4:
        raise InvalidDimensionsError(
            f"{fmt.name} requires a height that is a multiple of 4, got {pixel_count // width}"
        )

    canonical = decoder(native, settings, block_codec)

    if fmt.is_compressed and canonical and width is not None and width != TILE_WIDTH:
        canonical = strip_to_rows(canonical, width, pixel_count // width)
    return canonical


def encode_from_canonical(fmt: Format, canonical: bytes, *, width: Optional[int] = None,
                          settings: Optional[CodecSettings] = None,
                          block_codec: Optional[BlockCodec] = None) -> bytes:
    """
    Convert canonical BGRA pixels to the native encoding of fmt.

    Args:
        fmt: Target pixel format
        canonical: BGRA bytes, 4 per pixel. For DXT formats without width,
                   pixels are taken as a 4-pixel-wide block strip and the
                   length must be a multiple of 64 (one 4x4 block).
        width: Real image width, if known (see decode_to_canonical)
        settings: Codec settings (defaults to CodecSettings())
        block_codec: Block compression backend (defaults to PillowBlockCodec)

    Returns:
        Native pixel bytes

    Raises:
        UnsupportedFormatError: For UNKNOWN or formats without an encoder
        InvalidBufferLengthError: If canonical is not whole pixels/blocks
        InvalidDimensionsError: If width violates the tiling precondition
    """
    _, encoder = _converters(fmt)
    settings = settings or DEFAULT_SETTINGS
    block_codec = block_codec or DEFAULT_BLOCK_CODEC

    pixel_count = canonical_pixel_count(canonical)
    _check_width(fmt, pixel_count, width)

    if fmt.is_compressed:
        block_bytes = BLOCK_PIXELS * CANONICAL_BYTES_PER_PIXEL
        if width is not None:
            height = pixel_count // width
            if height % 4:
                raise InvalidDimensionsError(
                    f"{fmt.name} requires a height that is a multiple of 4, got {height}"
                )
            if pixel_count and width != TILE_WIDTH:
                canonical = rows_to_strip(canonical, width, height)
        elif len(canonical) % block_bytes:
            raise InvalidBufferLengthError(len(canonical), block_bytes, "canonical buffer")

    return encoder(canonical, settings, block_codec)
