"""
Block compression backend for DXT1/DXT3/DXT5.

The pixel codec only talks to a BlockCodec: compress canonical BGRA pixels
of a width x height image into a BCn block stream, or decompress a block
stream back to canonical pixels. The default backend compresses with the
numpy encoder in block_encoder and decompresses with Pillow, whose DDS plugin
reads BC1/BC2/BC3, so block data is wrapped in a minimal in-memory DDS
container on the way in.

Width and height must both be multiples of 4.
"""

import io
import logging
import struct
from enum import Enum
from typing import Protocol

import numpy as np
from PIL import Image

from .block_encoder import compress_blocks
from .errors import BlockCodecError, InvalidDimensionsError
from .formats import FOURCC_DXT1, FOURCC_DXT3, FOURCC_DXT5
from .settings import CompressionParams

logger = logging.getLogger(__name__)

DDS_HEADER_SIZE = 128

# DDS header flags
DDSD_CAPS = 0x1
DDSD_HEIGHT = 0x2
DDSD_WIDTH = 0x4
DDSD_PIXELFORMAT = 0x1000
DDSD_LINEARSIZE = 0x80000
DDPF_FOURCC = 0x4
DDSCAPS_TEXTURE = 0x1000


class BlockFormat(Enum):
    BC1 = "BC1"
    BC2 = "BC2"
    BC3 = "BC3"

    @property
    def block_size(self) -> int:
        return 8 if self is BlockFormat.BC1 else 16

    @property
    def fourcc(self) -> int:
        return _BLOCK_FOURCC[self]

    @property
    def pixel_format(self) -> str:
        """FourCC as text, e.g. DXT5 for BC3"""
        return _BLOCK_FOURCC[self].to_bytes(4, 'little').decode('ascii')


_BLOCK_FOURCC = {
    BlockFormat.BC1: FOURCC_DXT1,
    BlockFormat.BC2: FOURCC_DXT3,
    BlockFormat.BC3: FOURCC_DXT5,
}

# Alpha block layout passed to compress_blocks
_ALPHA_ENCODING = {
    BlockFormat.BC1: None,
    BlockFormat.BC2: "explicit",
    BlockFormat.BC3: "interpolated",
}


def compressed_size(block_format: BlockFormat, width: int, height: int) -> int:
    """Size in bytes of the block stream for a width x height image"""
    blocks_x = (width + 3) // 4
    blocks_y = (height + 3) // 4
    return blocks_x * blocks_y * block_format.block_size


def _check_dimensions(width: int, height: int):
    if width <= 0 or height <= 0 or width % 4 or height % 4:
        raise InvalidDimensionsError(
            f"Block-compressed images must be a multiple of 4 in both dimensions, got {width}x{height}"
        )


class BlockCodec(Protocol):
    """Interface for a BCn compressor/decompressor working on canonical BGRA pixels"""

    def compress(self, block_format: BlockFormat, width: int, height: int,
                 pixels: bytes, params: CompressionParams) -> bytes:
        ...

    def decompress(self, block_format: BlockFormat, width: int, height: int,
                   blocks: bytes) -> bytes:
        ...


class PillowBlockCodec:
    """
    BlockCodec that decompresses with Pillow's DDS plugin and compresses with
    the numpy encoder in block_encoder.

    Compression honours every CompressionParams field: the fit algorithm,
    the colour metric and alpha weighting of colour error.
    """

    def create_dds_header(self, block_format: BlockFormat, width: int, height: int) -> bytes:
        header = bytearray(DDS_HEADER_SIZE)
        header[0:4] = b"DDS "
        flags = DDSD_CAPS | DDSD_HEIGHT | DDSD_WIDTH | DDSD_PIXELFORMAT | DDSD_LINEARSIZE
        struct.pack_into('<IIIII', header, 4,
                         124, flags, height, width,
                         compressed_size(block_format, width, height))
        # Pixel format: size, flags, fourcc
        struct.pack_into('<III', header, 76, 32, DDPF_FOURCC, block_format.fourcc)
        struct.pack_into('<I', header, 108, DDSCAPS_TEXTURE)
        return bytes(header)

    def decompress(self, block_format: BlockFormat, width: int, height: int,
                   blocks: bytes) -> bytes:
        _check_dimensions(width, height)
        expected = compressed_size(block_format, width, height)
        if len(blocks) != expected:
            raise BlockCodecError(
                f"{block_format.name} stream for {width}x{height} must be {expected} bytes, got {len(blocks)}"
            )

        logger.debug("Decompressing %s %dx%d (%d bytes)", block_format.name, width, height, len(blocks))
        dds_data = self.create_dds_header(block_format, width, height) + bytes(blocks)
        try:
            with io.BytesIO(dds_data) as dds_file:
                with Image.open(dds_file) as img:
                    img = img.convert("RGBA")
                    return img.tobytes("raw", "BGRA")
        except (OSError, ValueError) as e:
            raise BlockCodecError(f"Failed to decompress {block_format.name} data: {e}") from e

    def compress(self, block_format: BlockFormat, width: int, height: int,
                 pixels: bytes, params: CompressionParams) -> bytes:
        _check_dimensions(width, height)
        if len(pixels) != width * height * 4:
            raise BlockCodecError(
                f"Expected {width * height * 4} bytes of BGRA pixels for {width}x{height}, got {len(pixels)}"
            )

        logger.debug("Compressing %s %dx%d (algorithm=%s, uniform=%s, alpha-weighted=%s)",
                     block_format.name, width, height, params.algorithm,
                     params.uniform_weighting, params.weigh_colour_by_alpha)
        try:
            blocks = compress_blocks(pixels, width, height, params, _ALPHA_ENCODING[block_format])
        except (ValueError, np.linalg.LinAlgError) as e:
            raise BlockCodecError(f"Failed to compress {block_format.name} data: {e}") from e

        expected = compressed_size(block_format, width, height)
        if len(blocks) != expected:
            raise BlockCodecError(
                f"Encoder produced {len(blocks)} bytes of {block_format.name} data, expected {expected}"
            )
        return blocks


DEFAULT_BLOCK_CODEC = PillowBlockCodec()
