"""Exceptions raised by format identification and pixel conversion"""


class DdsCoreError(Exception):
    """Base class for all dds_core errors"""


class UnsupportedFormatError(DdsCoreError):
    """
    Raised when a format has no conversion.

    ``recognized`` is False for Format.UNKNOWN (the header did not match any
    known layout) and True for formats that were identified but have no
    decoder/encoder (e.g. A16B16G16R16).
    """

    def __init__(self, fmt, recognized: bool):
        self.format = fmt
        self.recognized = recognized
        if recognized:
            msg = f"No conversion implemented for format {fmt.name}"
        else:
            msg = "Unrecognized pixel format"
        super().__init__(msg)


class MalformedHeaderError(DdsCoreError):
    """Header stream is too short or cannot be read at the required offsets"""


class InvalidBufferLengthError(DdsCoreError, ValueError):
    """Buffer length is not a whole number of pixels or blocks"""

    def __init__(self, length: int, stride: int, what: str = "buffer"):
        self.length = length
        self.stride = stride
        super().__init__(
            f"{what} length {length} is not a multiple of {stride} bytes"
        )


class InvalidDimensionsError(DdsCoreError, ValueError):
    """Image dimensions violate the 4x4 tiling precondition"""


class BlockCodecError(DdsCoreError):
    """The block compression backend failed"""
