"""
DDS pixel format identification.

Only three fields of the header are inspected: the pixel format FourCC,
the red bit mask and the alpha bit mask. The (fourcc, red, alpha) triple is
matched exactly against a small table of legacy layouts; anything else is
reported as Format.UNKNOWN.

Header offsets (absolute, from the start of the file including the magic):
- 84:  ddspf.dwFourCC
- 92:  ddspf.dwRBitMask
- 96:  ddspf.dwGBitMask (skipped)
- 100: ddspf.dwBBitMask (skipped)
- 104: ddspf.dwABitMask
"""

import io
import logging
import os
import struct
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import MalformedHeaderError

logger = logging.getLogger(__name__)


# FourCC codes (little-endian ASCII)
FOURCC_NONE = 0x00000000
FOURCC_DXT1 = 0x31545844  # 'DXT1'
FOURCC_DXT3 = 0x33545844  # 'DXT3'
FOURCC_DXT5 = 0x35545844  # 'DXT5'

# D3DFORMAT code stored in the FourCC slot for 64-bit RGBA
D3DFMT_A16B16G16R16 = 113

OFFSET_FOURCC = 84
OFFSET_RED_MASK = 92
OFFSET_ALPHA_MASK = 104
HEADER_MIN_SIZE = OFFSET_ALPHA_MASK + 4


class Format(Enum):
    UNKNOWN = "UNKNOWN"
    L8 = "L8"
    A8 = "A8"
    A4R4G4B4 = "A4R4G4B4"
    A1R5G5B5 = "A1R5G5B5"
    A8R8G8B8 = "A8R8G8B8"
    X8R8G8B8 = "X8R8G8B8"
    DXT1 = "DXT1"
    DXT3 = "DXT3"
    DXT5 = "DXT5"
    A16B16G16R16 = "A16B16G16R16"

    @property
    def bytes_per_pixel(self) -> Optional[int]:
        """Native stride, or None for block-compressed and unknown formats"""
        return _FORMAT_INFO[self].bytes_per_pixel

    @property
    def block_size(self) -> Optional[int]:
        """Bytes per 4x4 block, or None for uncompressed formats"""
        return _FORMAT_INFO[self].block_size

    @property
    def dxgi_name(self) -> str:
        return _FORMAT_INFO[self].dxgi_name

    @property
    def is_compressed(self) -> bool:
        return _FORMAT_INFO[self].block_size is not None

    @property
    def is_convertible(self) -> bool:
        """Whether decode/encode are implemented for this format"""
        return _FORMAT_INFO[self].convertible


@dataclass(frozen=True)
class _FormatInfo:
    bytes_per_pixel: Optional[int]
    block_size: Optional[int]
    dxgi_name: str
    convertible: bool = True


_FORMAT_INFO = {
    Format.UNKNOWN: _FormatInfo(None, None, 'UNKNOWN', convertible=False),
    Format.L8: _FormatInfo(1, None, 'L8_UNORM'),
    Format.A8: _FormatInfo(1, None, 'A8_UNORM'),
    Format.A4R4G4B4: _FormatInfo(2, None, 'B4G4R4A4_UNORM'),
    Format.A1R5G5B5: _FormatInfo(2, None, 'B5G5R5A1_UNORM'),
    Format.A8R8G8B8: _FormatInfo(4, None, 'B8G8R8A8_UNORM'),
    Format.X8R8G8B8: _FormatInfo(4, None, 'B8G8R8X8_UNORM'),
    Format.DXT1: _FormatInfo(None, 8, 'BC1_UNORM'),
    Format.DXT3: _FormatInfo(None, 16, 'BC2_UNORM'),
    Format.DXT5: _FormatInfo(None, 16, 'BC3_UNORM'),
    Format.A16B16G16R16: _FormatInfo(8, None, 'R16G16B16A16_UNORM', convertible=False),
}


@dataclass(frozen=True)
class HeaderDescriptor:
    """The three header fields that decide the pixel format"""
    compression_code: int
    red_mask: int
    alpha_mask: int


# (fourcc, red mask, alpha mask) -> format
_FORMAT_TABLE = {
    (FOURCC_NONE, 0x000000FF, 0x00000000): Format.L8,
    (FOURCC_NONE, 0x00000000, 0x000000FF): Format.A8,
    (FOURCC_NONE, 0x00000F00, 0x0000F000): Format.A4R4G4B4,
    (FOURCC_NONE, 0x00007C00, 0x00008000): Format.A1R5G5B5,
    (FOURCC_NONE, 0x00FF0000, 0xFF000000): Format.A8R8G8B8,
    (FOURCC_NONE, 0x00FF0000, 0x00000000): Format.X8R8G8B8,
    (FOURCC_DXT1, 0, 0): Format.DXT1,
    (FOURCC_DXT3, 0, 0): Format.DXT3,
    (FOURCC_DXT5, 0, 0): Format.DXT5,
    # (D3DFMT_A16B16G16R16, 0, 0) is intentionally absent: it identifies as UNKNOWN
}


def _read_u32(stream: BinaryIO, field: str) -> int:
    data = stream.read(4)
    if data is None or len(data) < 4:
        raise MalformedHeaderError(f"Header too short to read {field}")
    return struct.unpack('<I', data)[0]


def read_header_descriptor(stream: BinaryIO) -> HeaderDescriptor:
    """
    Read the FourCC, red mask and alpha mask from a DDS header stream.

    The stream must be seekable. Its position afterwards is unspecified.

    Raises:
        MalformedHeaderError: If the stream is too short or cannot be read
    """
    try:
        stream.seek(OFFSET_FOURCC)
        fourcc = _read_u32(stream, 'fourcc')
        stream.seek(OFFSET_RED_MASK)
        red_mask = _read_u32(stream, 'red mask')
        # Skip green and blue masks
        stream.seek(8, os.SEEK_CUR)
        alpha_mask = _read_u32(stream, 'alpha mask')
    except (OSError, ValueError) as e:
        raise MalformedHeaderError(f"Unable to read DDS header: {e}") from e

    return HeaderDescriptor(fourcc, red_mask, alpha_mask)


def classify(descriptor: HeaderDescriptor) -> Format:
    """Map a header descriptor to a Format (UNKNOWN if not in the table)"""
    key = (descriptor.compression_code, descriptor.red_mask, descriptor.alpha_mask)
    return _FORMAT_TABLE.get(key, Format.UNKNOWN)


def identify(stream: BinaryIO) -> Format:
    """
    Identify the pixel format of a DDS header.

    Args:
        stream: Seekable binary stream positioned anywhere

    Returns:
        The matching Format, or Format.UNKNOWN

    Raises:
        MalformedHeaderError: If the header is truncated or unreadable
    """
    descriptor = read_header_descriptor(stream)
    fmt = classify(descriptor)
    logger.debug(
        "fourcc=0x%08X rmask=0x%08X amask=0x%08X -> %s",
        descriptor.compression_code, descriptor.red_mask, descriptor.alpha_mask, fmt.name,
    )
    return fmt


def identify_bytes(data: bytes) -> Format:
    """Identify the pixel format of an in-memory DDS header"""
    return identify(io.BytesIO(data))


def identify_file(filepath: Union[str, Path]) -> Format:
    """Identify the pixel format of a DDS file on disk"""
    with open(filepath, 'rb') as f:
        return identify(f)
