import io

import pytest

from dds_core import (
    Format,
    HeaderDescriptor,
    MalformedHeaderError,
    classify,
    identify,
    identify_bytes,
    identify_file,
    read_header_descriptor,
)
from dds_core.formats import D3DFMT_A16B16G16R16, FOURCC_DXT1, FOURCC_DXT3, FOURCC_DXT5


@pytest.mark.parametrize("fourcc, red_mask, alpha_mask, expected", [
    (0, 0x000000FF, 0x00000000, Format.L8),
    (0, 0x00000000, 0x000000FF, Format.A8),
    (0, 0x00000F00, 0x0000F000, Format.A4R4G4B4),
    (0, 0x00007C00, 0x00008000, Format.A1R5G5B5),
    (0, 0x00FF0000, 0xFF000000, Format.A8R8G8B8),
    (0, 0x00FF0000, 0x00000000, Format.X8R8G8B8),
    (FOURCC_DXT1, 0, 0, Format.DXT1),
    (FOURCC_DXT3, 0, 0, Format.DXT3),
    (FOURCC_DXT5, 0, 0, Format.DXT5),
])
def test_identify_known_layouts(make_header, fourcc, red_mask, alpha_mask, expected):
    header = make_header(fourcc=fourcc, red_mask=red_mask, alpha_mask=alpha_mask)
    assert identify(io.BytesIO(header)) is expected


def test_dxt1_fourcc_bytes():
    assert FOURCC_DXT1.to_bytes(4, 'little') == b"DXT1"


def test_identify_dxt1_ignores_green_and_blue_masks(make_header):
    header = make_header(fourcc=FOURCC_DXT1, green_mask=0xDEADBEEF, blue_mask=0x12345678)
    assert identify_bytes(header) is Format.DXT1


def test_identify_dxt1_with_masks_set_is_unknown(make_header):
    # Exact match on the whole triple
    header = make_header(fourcc=FOURCC_DXT1, red_mask=0x00FF0000)
    assert identify_bytes(header) is Format.UNKNOWN


def test_identify_zeroed_header_is_unknown():
    assert identify_bytes(bytes(128)) is Format.UNKNOWN


def test_identify_unlisted_triple_is_unknown(make_header):
    # R5G6B5 is not in the table
    header = make_header(red_mask=0xF800, green_mask=0x07E0, blue_mask=0x001F)
    assert identify_bytes(header) is Format.UNKNOWN


def test_a16b16g16r16_identifies_as_unknown(make_header):
    header = make_header(fourcc=D3DFMT_A16B16G16R16)
    assert identify_bytes(header) is Format.UNKNOWN


def test_identify_exact_minimum_size(make_header):
    header = make_header(fourcc=FOURCC_DXT5, size=108)
    assert identify_bytes(header) is Format.DXT5


def test_identify_from_any_stream_position(make_header):
    stream = io.BytesIO(make_header(red_mask=0xFF))
    stream.seek(0, io.SEEK_END)
    assert identify(stream) is Format.L8


@pytest.mark.parametrize("size", [0, 4, 84, 87, 95, 104, 107])
def test_truncated_header_raises(size):
    with pytest.raises(MalformedHeaderError):
        identify_bytes(bytes(size))


def test_unreadable_stream_raises():
    stream = io.BytesIO(bytes(128))
    stream.close()
    with pytest.raises(MalformedHeaderError):
        identify(stream)


def test_read_header_descriptor(make_header):
    header = make_header(fourcc=0, red_mask=0x7C00, alpha_mask=0x8000, green_mask=0x03E0, blue_mask=0x1F)
    descriptor = read_header_descriptor(io.BytesIO(header))
    assert descriptor == HeaderDescriptor(0, 0x7C00, 0x8000)


def test_classify_is_pure():
    assert classify(HeaderDescriptor(0, 0x0F00, 0xF000)) is Format.A4R4G4B4
    assert classify(HeaderDescriptor(1, 0x0F00, 0xF000)) is Format.UNKNOWN


def test_identify_file(tmp_path, make_header):
    path = tmp_path / "texture.dds"
    path.write_bytes(make_header(red_mask=0x00FF0000, alpha_mask=0xFF000000) + bytes(64))
    assert identify_file(path) is Format.A8R8G8B8


def test_identify_file_short(tmp_path):
    path = tmp_path / "short.dds"
    path.write_bytes(b"DDS ")
    with pytest.raises(MalformedHeaderError):
        identify_file(path)


def test_format_metadata():
    assert Format.L8.bytes_per_pixel == 1
    assert Format.A1R5G5B5.bytes_per_pixel == 2
    assert Format.X8R8G8B8.bytes_per_pixel == 4
    assert Format.DXT1.block_size == 8
    assert Format.DXT3.block_size == 16
    assert Format.DXT5.block_size == 16
    assert Format.DXT1.is_compressed
    assert not Format.A8.is_compressed
    assert Format.DXT3.dxgi_name == 'BC2_UNORM'
    assert not Format.UNKNOWN.is_convertible
    assert not Format.A16B16G16R16.is_convertible
    assert Format.A8R8G8B8.is_convertible
