"""Single instance DICOM decoder for uncompressed pixel data.

pydicom walks the data set, so the pixel data element is located through
its tag rather than at a fixed byte offset. Only the attributes needed to
recover the pixel grid are interpreted.
"""

import io
import logging

import numpy as np
import pydicom
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue
from pydicom.tag import Tag

from medslice.buffer import ElementKind, VoxelBuffer
from medslice.errors import (
    ArrayLengthMismatch,
    InvalidFormat,
    MissingPixelData,
    UnsupportedFormat,
)

logger = logging.getLogger(__name__)

PIXEL_DATA_TAG = Tag(0x7FE0, 0x0010)


def _read_dataset(raw: bytes) -> pydicom.Dataset:
    try:
        return pydicom.dcmread(io.BytesIO(raw), force=True)
    except (InvalidDicomError, EOFError, ValueError) as e:
        raise InvalidFormat(f"Invalid DICOM file format: {e}") from e


def _transfer_syntax(ds: pydicom.Dataset):
    file_meta = getattr(ds, "file_meta", None)
    if file_meta is None:
        return None
    return file_meta.get("TransferSyntaxUID")


def _element_kind(bits_allocated: int, pixel_representation: int) -> ElementKind:
    if bits_allocated == 16:
        return ElementKind.INT16 if pixel_representation == 1 else ElementKind.UINT16
    return ElementKind.UINT8


def _float_value(ds: pydicom.Dataset, keyword: str, default: float) -> float:
    """Read a numeric attribute that is recorded but never applied.

    Empty values fall back to ``default``; multi-valued ones use the
    first value.
    """
    value = ds.get(keyword)
    if isinstance(value, MultiValue):
        value = value[0] if len(value) else None
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable DICOM {keyword}: {value!r}")
        return default


def _pixel_data_offset(ds: pydicom.Dataset) -> int | None:
    elem = ds.get_item(PIXEL_DATA_TAG)
    return getattr(elem, "value_tell", None)


def decode_dicom(raw: bytes) -> VoxelBuffer:
    """Decode one DICOM instance into a single slice voxel buffer.

    Args:
        raw: Contents of a DICOM Part 10 file (preamble optional).

    Returns:
        VoxelBuffer with dimensions ``(columns, rows, 1)``; uint16 samples
        when BitsAllocated is 16 (int16 for signed pixel representation),
        uint8 otherwise.

    Raises:
        InvalidFormat: If the bytes cannot be parsed as a DICOM data set.
        MissingPixelData: If Rows, Columns or the pixel data element
            (7FE0,0010) are absent.
        UnsupportedFormat: If the pixel data uses a compressed transfer syntax.
        ArrayLengthMismatch: If the pixel data length does not match
            ``rows * columns * samples_per_pixel``.
    """
    ds = _read_dataset(raw)

    rows = int(ds.get("Rows") or 0)
    columns = int(ds.get("Columns") or 0)
    if rows < 1 or columns < 1:
        raise MissingPixelData(
            f"DICOM is missing image dimensions (rows={rows}, columns={columns})"
        )
    if PIXEL_DATA_TAG not in ds:
        raise MissingPixelData("DICOM has no pixel data element (7FE0,0010)")

    transfer_syntax = _transfer_syntax(ds)
    if transfer_syntax is not None and transfer_syntax.is_compressed:
        raise UnsupportedFormat(
            f"Compressed DICOM pixel data is not supported ({transfer_syntax.name})"
        )

    samples_per_pixel = int(ds.get("SamplesPerPixel") or 1)
    bits_allocated = int(ds.get("BitsAllocated") or 8)
    pixel_representation = int(ds.get("PixelRepresentation") or 0)
    offset = _pixel_data_offset(ds)

    kind = _element_kind(bits_allocated, pixel_representation)
    dtype = kind.dtype
    if transfer_syntax is not None and not transfer_syntax.is_little_endian:
        dtype = dtype.newbyteorder(">")

    pixel_bytes = ds.PixelData
    if pixel_bytes is None:
        raise MissingPixelData("DICOM pixel data element is empty")

    expected_bytes = rows * columns * samples_per_pixel * kind.itemsize
    if len(pixel_bytes) == expected_bytes + 1 and len(pixel_bytes) % 2 == 0:
        # Value is padded to even length
        pixel_bytes = pixel_bytes[:expected_bytes]
    if len(pixel_bytes) != expected_bytes:
        raise ArrayLengthMismatch(
            f"DICOM pixel data has {len(pixel_bytes)} bytes, expected "
            f"{expected_bytes} for {rows}x{columns}x{samples_per_pixel} "
            f"{kind.value}"
        )

    metadata = {
        "rows": rows,
        "columns": columns,
        "bitsAllocated": bits_allocated,
        "samplesPerPixel": samples_per_pixel,
        "pixelRepresentation": pixel_representation,
        "pixelDataOffset": offset,
        "modality": str(ds.get("Modality", "")),
        "rescaleSlope": _float_value(ds, "RescaleSlope", 1.0),
        "rescaleIntercept": _float_value(ds, "RescaleIntercept", 0.0),
    }
    if transfer_syntax is not None:
        metadata["transferSyntaxUID"] = str(transfer_syntax)

    pixel_spacing = ds.get("PixelSpacing")
    thickness = _float_value(ds, "SliceThickness", 1.0)
    spacing = (1.0, 1.0, thickness if thickness > 0 else 1.0)
    if pixel_spacing is not None and len(pixel_spacing) == 2:
        # PixelSpacing is (row spacing, column spacing)
        spacing = (float(pixel_spacing[1]), float(pixel_spacing[0]), spacing[2])

    elements = np.frombuffer(pixel_bytes, dtype=dtype)
    return VoxelBuffer(
        elements=elements,
        dimensions=(columns, rows, 1),
        spacing=spacing,
        metadata=metadata,
    )
