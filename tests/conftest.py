import struct

import pytest


def build_header(fourcc=0, red_mask=0, alpha_mask=0, green_mask=0, blue_mask=0, size=128):
    """Build a DDS header with only the pixel format fields filled in"""
    header = bytearray(size)
    header[0:4] = b"DDS "
    struct.pack_into('<I', header, 84, fourcc)
    struct.pack_into('<IIII', header, 92, red_mask, green_mask, blue_mask, alpha_mask)
    return bytes(header)


@pytest.fixture
def make_header():
    return build_header


class RecordingBlockCodec:
    """BlockCodec that records its calls and returns predictable data"""

    def __init__(self):
        self.calls = []

    def compress(self, block_format, width, height, pixels, params):
        self.calls.append(('compress', block_format, width, height, bytes(pixels), params))
        return bytes(width * height // 16 * block_format.block_size)

    def decompress(self, block_format, width, height, blocks):
        self.calls.append(('decompress', block_format, width, height, bytes(blocks)))
        # Every pixel carries its own index in the blue byte
        out = bytearray()
        for i in range(width * height):
            out += bytes([i & 0xFF, 0, 0, 255])
        return bytes(out)


@pytest.fixture
def recording_codec():
    return RecordingBlockCodec()
