"""NumPy ``.npy`` decoder.

The header is parsed in two stages. The strict stage evaluates the header
as a Python literal, which is how numpy itself writes it. The relaxed stage
pulls ``descr`` and ``shape`` out with the regular expressions below, for
headers that are not valid literals (hand written or truncated padding):

    'descr' : '<dtype>'       single or double quotes
    'shape' : (d0, d1, ...)   comma separated integers, trailing comma allowed

Fields are never guessed; if neither stage yields both, decoding fails.
"""

import ast
import logging
import re
import struct

import numpy as np

from medslice.buffer import ElementKind, VoxelBuffer
from medslice.config import NPY_ALIGNMENT, NPY_MAGIC
from medslice.errors import ArrayLengthMismatch, HeaderParseError, InvalidMagic

logger = logging.getLogger(__name__)

# dtype descriptors with a matching element kind
NPY_DTYPES = {
    "<u1": ElementKind.UINT8,
    "|u1": ElementKind.UINT8,
    "<u2": ElementKind.UINT16,
    "<i2": ElementKind.INT16,
    "<i4": ElementKind.INT32,
    "<f4": ElementKind.FLOAT32,
    "<f8": ElementKind.FLOAT64,
}

# Unrecognized descriptors are read as uint8
FALLBACK_KIND = ElementKind.UINT8

# version -> (struct format of the header length field, header start offset)
HEADER_LENGTH_FIELDS = {
    1: ("<H", 10),
    2: ("<I", 12),
    3: ("<I", 12),
}

_DESCR_RE = re.compile(r"""['"]descr['"]\s*:\s*['"]([^'"]+)['"]""")
_SHAPE_RE = re.compile(r"""['"]shape['"]\s*:\s*\(([^)]*)\)""")
_FORTRAN_RE = re.compile(r"""['"]fortran_order['"]\s*:\s*(True|False)""")


def _parse_strict(text: str) -> dict | None:
    try:
        header = ast.literal_eval(text)
    except (ValueError, SyntaxError, MemoryError, RecursionError):
        return None
    if not isinstance(header, dict):
        return None
    descr = header.get("descr")
    shape = header.get("shape")
    if not isinstance(descr, str) or not isinstance(shape, tuple):
        return None
    if not all(isinstance(d, int) for d in shape):
        return None
    return {
        "descr": descr,
        "shape": shape,
        "fortran_order": bool(header.get("fortran_order", False)),
    }


def _parse_relaxed(text: str) -> dict | None:
    descr_match = _DESCR_RE.search(text)
    shape_match = _SHAPE_RE.search(text)
    if descr_match is None or shape_match is None:
        return None
    try:
        shape = tuple(
            int(part) for part in shape_match.group(1).split(",") if part.strip()
        )
    except ValueError:
        return None
    fortran_match = _FORTRAN_RE.search(text)
    return {
        "descr": descr_match.group(1),
        "shape": shape,
        "fortran_order": fortran_match is not None and fortran_match.group(1) == "True",
    }


def parse_header(text: str) -> dict:
    """Parse the header dictionary of a ``.npy`` file.

    Args:
        text: Decoded header text.

    Returns:
        Dict with ``descr`` (str), ``shape`` (tuple of int) and
        ``fortran_order`` (bool).

    Raises:
        HeaderParseError: If neither the strict nor the relaxed stage
            recovers both ``descr`` and ``shape``.
    """
    header = _parse_strict(text)
    if header is not None:
        return header

    header = _parse_relaxed(text)
    if header is not None:
        logger.warning(f"NumPy header is not a valid literal, used relaxed parse: {text!r}")
        return header

    raise HeaderParseError(f"Could not parse NumPy header: {text!r}")


def shape_to_dimensions(shape: tuple[int, ...]) -> tuple[int, int, int]:
    """Map an array shape onto ``(width, height, depth)``.

    A 2D shape ``(h, w)`` becomes ``(w, h, 1)`` and a 1D shape ``(n,)``
    becomes ``(n, 1, 1)``. 3D shapes are reported verbatim.

    Raises:
        HeaderParseError: For scalar shapes, shapes of rank above 3 or
            non-positive extents.
    """
    if any(d < 1 for d in shape):
        raise HeaderParseError(f"NumPy shape has non-positive extent: {shape}")
    if len(shape) == 1:
        return (shape[0], 1, 1)
    if len(shape) == 2:
        height, width = shape
        return (width, height, 1)
    if len(shape) == 3:
        return (shape[0], shape[1], shape[2])
    raise HeaderParseError(f"NumPy shape of rank {len(shape)} cannot be mapped to a volume: {shape}")


def decode_npy(raw: bytes) -> VoxelBuffer:
    """Decode a ``.npy`` file (format version 1, 2 or 3).

    Args:
        raw: File contents.

    Returns:
        VoxelBuffer whose dimensions come from the header shape.

    Raises:
        InvalidMagic: If the file does not start with ``\\x93NUMPY``.
        HeaderParseError: If the version or header cannot be decoded.
        ArrayLengthMismatch: If the data section does not hold exactly
            ``product(shape)`` samples.

    Example:
        >>> buf = decode_npy(Path("volume.npy").read_bytes())
        >>> buf.kind
        <ElementKind.UINT16: 'uint16'>
    """
    if raw[:len(NPY_MAGIC)] != NPY_MAGIC:
        raise InvalidMagic(f"Invalid NumPy file format: magic {raw[:len(NPY_MAGIC)]!r}")
    if len(raw) < len(NPY_MAGIC) + 2:
        raise HeaderParseError("NumPy file is truncated before the version field")

    major, minor = raw[6], raw[7]
    if major not in HEADER_LENGTH_FIELDS:
        raise HeaderParseError(f"Unsupported NumPy format version {major}.{minor}")
    length_format, header_start = HEADER_LENGTH_FIELDS[major]
    if len(raw) < header_start:
        raise HeaderParseError("NumPy file is truncated before the header")
    (header_length,) = struct.unpack_from(length_format, raw, 8)

    header_end = header_start + header_length
    if header_end > len(raw):
        raise HeaderParseError(
            f"NumPy header length {header_length} runs past end of file"
        )
    encoding = "latin-1" if major < 3 else "utf-8"
    try:
        text = raw[header_start:header_end].decode(encoding)
    except UnicodeDecodeError as e:
        raise HeaderParseError(f"Could not decode NumPy header: {e}") from e

    header = parse_header(text)
    descr = header["descr"]
    dimensions = shape_to_dimensions(header["shape"])

    kind = NPY_DTYPES.get(descr)
    if kind is None:
        logger.warning(f"Unrecognized NumPy dtype {descr!r}, reading as {FALLBACK_KIND.value}")
        kind = FALLBACK_KIND

    data_offset = -(-header_end // NPY_ALIGNMENT) * NPY_ALIGNMENT
    payload_length = max(len(raw) - data_offset, 0)
    expected = dimensions[0] * dimensions[1] * dimensions[2]
    if payload_length != expected * kind.itemsize:
        raise ArrayLengthMismatch(
            f"NumPy data holds {payload_length} bytes, shape {header['shape']} "
            f"of {kind.value} needs {expected * kind.itemsize}"
        )

    elements = np.frombuffer(raw, dtype=kind.dtype.newbyteorder("<"), offset=data_offset)
    return VoxelBuffer(
        elements=elements,
        dimensions=dimensions,
        metadata={
            "descr": descr,
            "shape": list(header["shape"]),
            "fortran_order": header["fortran_order"],
            "version": f"{major}.{minor}",
            "data_offset": data_offset,
        },
    )
