"""DDS pixel format identification and conversion to/from canonical BGRA"""

from .errors import (
    DdsCoreError,
    UnsupportedFormatError,
    MalformedHeaderError,
    InvalidBufferLengthError,
    InvalidDimensionsError,
    BlockCodecError,
)
from .formats import (
    Format,
    HeaderDescriptor,
    read_header_descriptor,
    classify,
    identify,
    identify_bytes,
    identify_file,
    FOURCC_DXT1,
    FOURCC_DXT3,
    FOURCC_DXT5,
)
from .codec import decode_to_canonical, encode_from_canonical
from .block_codec import BlockCodec, BlockFormat, PillowBlockCodec, compressed_size
from .settings import CodecSettings, CompressionParams
from .utils import (
    native_size,
    strip_to_rows,
    rows_to_strip,
)

__all__ = [
    # Errors
    'DdsCoreError',
    'UnsupportedFormatError',
    'MalformedHeaderError',
    'InvalidBufferLengthError',
    'InvalidDimensionsError',
    'BlockCodecError',
    # Identification
    'Format',
    'HeaderDescriptor',
    'read_header_descriptor',
    'classify',
    'identify',
    'identify_bytes',
    'identify_file',
    'FOURCC_DXT1',
    'FOURCC_DXT3',
    'FOURCC_DXT5',
    # Conversion
    'decode_to_canonical',
    'encode_from_canonical',
    # Block compression
    'BlockCodec',
    'BlockFormat',
    'PillowBlockCodec',
    'compressed_size',
    # Settings
    'CodecSettings',
    'CompressionParams',
    # Utilities
    'native_size',
    'strip_to_rows',
    'rows_to_strip',
]
