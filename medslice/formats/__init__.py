"""Format decoders and the load entry points that dispatch to them.

Exports:
    decode_bytes: Decode raw bytes with the decoder for a given FileType
    load_bytes: Detect the format of named bytes and decode them
    load_file: Read a file from disk and decode it
"""

import logging
from pathlib import Path

from medslice.buffer import FileType, LoadedFile, VoxelBuffer
from medslice.detect import SNIFF_LENGTH, detect_format
from medslice.formats.dicom import decode_dicom
from medslice.formats.nifti import decode_nifti
from medslice.formats.npy import decode_npy
from medslice.formats.raster import decode_raster

logger = logging.getLogger(__name__)


def decode_bytes(raw: bytes, file_type: FileType, filename: str = "") -> VoxelBuffer:
    """Decode ``raw`` with the decoder registered for ``file_type``.

    Args:
        raw: File contents.
        file_type: Format tag chosen by detection.
        filename: Used to tell ``.nii.gz`` from ``.nii``; when it is not a
            NIfTI name the gzip magic number decides.

    Returns:
        The decoded VoxelBuffer.
    """
    if file_type is FileType.NIFTI:
        compressed = True if filename.lower().endswith(".nii.gz") else None
        return decode_nifti(raw, compressed=compressed)
    if file_type is FileType.DICOM:
        return decode_dicom(raw)
    if file_type is FileType.NUMPY:
        return decode_npy(raw)
    if file_type is FileType.IMAGE:
        return decode_raster(raw)
    raise AssertionError(f"unhandled file type {file_type!r}")


def load_bytes(filename: str, raw: bytes) -> LoadedFile:
    """Detect the format of a named byte buffer and decode it.

    Args:
        filename: Original filename, its extension drives detection.
        raw: File contents.

    Returns:
        LoadedFile wrapping the decoded buffer.

    Raises:
        MedsliceError: Any detection or decode failure.

    Example:
        >>> loaded = load_bytes("scan.npy", Path("scan.npy").read_bytes())
        >>> loaded.file_type
        <FileType.NUMPY: 'numpy'>
    """
    file_type = detect_format(filename, raw[:SNIFF_LENGTH])
    data = decode_bytes(raw, file_type, filename)
    loaded = LoadedFile(
        data=data,
        filename=filename,
        file_type=file_type,
        file_size_bytes=len(raw),
    )
    logger.info(
        f"Loaded {filename} as {file_type.value} "
        f"({data.dimensions}, {data.kind.value}, {loaded.file_size_mb:.2f}MB)"
    )
    return loaded


def load_file(path: str | Path) -> LoadedFile:
    """Read a file from disk and decode it.

    Args:
        path: Path to the file.

    Returns:
        LoadedFile named after the file's basename.

    Raises:
        FileNotFoundError: If the file does not exist.
        MedsliceError: Any detection or decode failure.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    return load_bytes(path.name, path.read_bytes())


__all__ = [
    "decode_bytes",
    "decode_dicom",
    "decode_nifti",
    "decode_npy",
    "decode_raster",
    "load_bytes",
    "load_file",
]
