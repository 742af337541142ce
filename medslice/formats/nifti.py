"""NIfTI-1 single file decoder (.nii and .nii.gz).

The fixed 348 byte header is parsed with nibabel; the voxel payload is
reinterpreted in place according to the header datatype code.
"""

import gzip
import io
import logging
import zlib

import numpy as np
from nibabel.nifti1 import Nifti1Header
from nibabel.spatialimages import HeaderDataError

from medslice.buffer import ElementKind, VoxelBuffer
from medslice.config import NIFTI1_HEADER_SIZE, NIFTI1_MAGIC, NIFTI1_MAGIC_OFFSET
from medslice.detect import is_gzip
from medslice.errors import ArrayLengthMismatch, DecompressionError, InvalidFormat

logger = logging.getLogger(__name__)

# NIfTI-1 datatype codes with a matching element kind
NIFTI_DATATYPES = {
    2: ElementKind.UINT8,
    4: ElementKind.INT16,
    8: ElementKind.INT32,
    16: ElementKind.FLOAT32,
    64: ElementKind.FLOAT64,
    512: ElementKind.UINT16,
}

# Unrecognized datatype codes are read as float32
FALLBACK_KIND = ElementKind.FLOAT32


def inflate(raw: bytes) -> bytes:
    """Decompress a gzip stream.

    Raises:
        DecompressionError: If the stream is not valid gzip data.
    """
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionError(f"Failed to inflate gzip data: {e}") from e


def _read_header(raw: bytes) -> Nifti1Header:
    if len(raw) < NIFTI1_HEADER_SIZE:
        raise InvalidFormat(
            f"File is not in NIfTI format: {len(raw)} bytes is shorter "
            f"than the {NIFTI1_HEADER_SIZE} byte header"
        )
    magic = raw[NIFTI1_MAGIC_OFFSET:NIFTI1_MAGIC_OFFSET + len(NIFTI1_MAGIC)]
    if magic != NIFTI1_MAGIC:
        raise InvalidFormat(f"File is not in NIfTI format: magic {magic!r}")
    try:
        return Nifti1Header.from_fileobj(
            io.BytesIO(raw[:NIFTI1_HEADER_SIZE]), check=False
        )
    except HeaderDataError as e:
        raise InvalidFormat(f"Invalid NIfTI header: {e}") from e


def _volume_dimensions(header: Nifti1Header) -> tuple[int, int, int]:
    dim = [int(d) for d in header["dim"]]
    ndim = dim[0]
    if not 1 <= ndim <= 7:
        raise InvalidFormat(f"Invalid NIfTI dim[0]: {ndim}")
    # Axes beyond dim[0] are unused and count as 1
    dims = tuple(dim[i] if i <= ndim else 1 for i in (1, 2, 3))
    if any(d < 1 for d in dims):
        raise InvalidFormat(f"Invalid NIfTI dimensions: {dims}")
    if ndim > 3 and any(d > 1 for d in dim[4:ndim + 1]):
        logger.warning(
            f"NIfTI has {ndim} dimensions {dim[1:ndim + 1]}; "
            f"only the first 3D volume is read"
        )
    return dims


def _header_metadata(header: Nifti1Header) -> dict:
    return {
        "datatype": int(header["datatype"]),
        "bitpix": int(header["bitpix"]),
        "dim": [int(d) for d in header["dim"]],
        "pixdim": [float(p) for p in header["pixdim"]],
        "vox_offset": int(header.get_data_offset()),
        "scl_slope": float(header["scl_slope"]),
        "scl_inter": float(header["scl_inter"]),
        "descrip": header["descrip"].item().decode("latin-1").rstrip("\x00"),
        "endianness": header.endianness,
    }


def decode_nifti(raw: bytes, compressed: bool | None = None) -> VoxelBuffer:
    """Decode a single file NIfTI-1 image into a voxel buffer.

    Args:
        raw: File contents, optionally gzip compressed.
        compressed: Whether ``raw`` is gzip data. None sniffs the gzip
            magic number.

    Returns:
        VoxelBuffer with dimensions ``(dim[1], dim[2], dim[3])``.

    Raises:
        DecompressionError: If gzip inflation fails.
        InvalidFormat: If the NIfTI magic signature does not match.
        ArrayLengthMismatch: If the payload is shorter than the header
            declares or does not divide into whole samples.

    Example:
        >>> buf = decode_nifti(Path("brain.nii.gz").read_bytes())
        >>> buf.dimensions
        (240, 240, 155)
    """
    if compressed is None:
        compressed = is_gzip(raw)
    if compressed:
        raw = inflate(raw)

    header = _read_header(raw)
    width, height, depth = _volume_dimensions(header)
    count = width * height * depth

    code = int(header["datatype"])
    kind = NIFTI_DATATYPES.get(code)
    if kind is None:
        logger.warning(
            f"Unrecognized NIfTI datatype code {code}, reading as {FALLBACK_KIND.value}"
        )
        kind = FALLBACK_KIND

    bitpix = int(header["bitpix"])
    payload_length = count * bitpix // 8
    offset = int(header.get_data_offset())
    if offset + payload_length > len(raw):
        raise ArrayLengthMismatch(
            f"NIfTI payload truncated: need {payload_length} bytes at offset "
            f"{offset}, file has {len(raw)}"
        )
    if payload_length % kind.itemsize != 0:
        raise ArrayLengthMismatch(
            f"NIfTI payload of {payload_length} bytes is not a whole number "
            f"of {kind.value} samples"
        )

    dtype = kind.dtype.newbyteorder(header.endianness)
    elements = np.frombuffer(
        raw, dtype=dtype, count=payload_length // kind.itemsize, offset=offset
    )

    pixdim = header["pixdim"]
    spacing = tuple(float(p) if p > 0 else 1.0 for p in pixdim[1:4])

    return VoxelBuffer(
        elements=elements,
        dimensions=(width, height, depth),
        spacing=spacing,
        metadata=_header_metadata(header),
    )
