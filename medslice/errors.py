"""Error types raised while detecting, decoding and slicing image files.

Every failure surfaced by this package derives from :class:`MedsliceError`
so callers can present one message and let the user pick another file.
Decoders never return partially filled buffers; they raise one of these.
"""


class MedsliceError(Exception):
    """Base class for all decode and extraction failures."""


class UnsupportedFormat(MedsliceError):
    """Extension and content were not recognized as a supported format."""


class InvalidFormat(MedsliceError):
    """A format signature check failed."""


class InvalidMagic(InvalidFormat):
    """Leading magic bytes did not match the expected signature."""


class HeaderParseError(MedsliceError):
    """A structured header could not be decoded by any parse strategy."""


class MissingPixelData(MedsliceError):
    """Required dimension fields or the pixel data element are absent."""


class DecompressionError(MedsliceError):
    """Gzip inflation failed."""


class DimensionMismatch(MedsliceError):
    """Slices passed to the stack assembler do not share one shape."""


class ArrayLengthMismatch(MedsliceError):
    """Decoded element count differs from the product of the dimensions."""
