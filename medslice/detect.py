"""File format detection.

Detection looks at the filename extension first and only falls back to
sniffing the leading bytes when the extension is not recognized.
"""

import logging

from medslice.buffer import FileType
from medslice.config import (
    DICOM_MAGIC,
    DICOM_PREAMBLE_LENGTH,
    GZIP_MAGIC,
    JPEG_MAGIC,
    NIFTI1_MAGIC,
    NIFTI1_MAGIC_OFFSET,
    NPY_MAGIC,
    PNG_MAGIC,
)
from medslice.errors import UnsupportedFormat

logger = logging.getLogger(__name__)

# Longest suffix first so ".nii.gz" wins over ".gz"
EXTENSION_TYPES = (
    (".nii.gz", FileType.NIFTI),
    (".nii", FileType.NIFTI),
    (".npy", FileType.NUMPY),
    (".dcm", FileType.DICOM),
    (".dicom", FileType.DICOM),
    (".png", FileType.IMAGE),
    (".jpg", FileType.IMAGE),
    (".jpeg", FileType.IMAGE),
)

# Bytes needed to sniff every supported signature
SNIFF_LENGTH = NIFTI1_MAGIC_OFFSET + len(NIFTI1_MAGIC)


def is_gzip(raw: bytes) -> bool:
    """Check whether ``raw`` starts with the gzip magic number."""
    return raw[:2] == GZIP_MAGIC


def is_nifti_file(filename: str) -> bool:
    """Check if filename indicates a NIfTI file.

    Args:
        filename: The filename to check.

    Returns:
        True if the filename ends with .nii or .nii.gz (case insensitive).
    """
    lower = filename.lower()
    return lower.endswith(".nii") or lower.endswith(".nii.gz")


def detect_from_extension(filename: str) -> FileType | None:
    """Return the format implied by the filename extension, if any."""
    lower = filename.lower()
    for suffix, file_type in EXTENSION_TYPES:
        if lower.endswith(suffix):
            return file_type
    return None


def sniff_content(head: bytes) -> FileType | None:
    """Guess the format from the leading bytes of a file.

    Args:
        head: At least the first ``SNIFF_LENGTH`` bytes when available.

    Returns:
        The matching FileType, or None when no signature matched.
    """
    if head.startswith(NPY_MAGIC):
        return FileType.NUMPY
    if head.startswith(PNG_MAGIC) or head.startswith(JPEG_MAGIC):
        return FileType.IMAGE
    if is_gzip(head):
        # Only compressed NIfTI is accepted in gzip form
        return FileType.NIFTI
    dicm_end = DICOM_PREAMBLE_LENGTH + len(DICOM_MAGIC)
    if head[DICOM_PREAMBLE_LENGTH:dicm_end] == DICOM_MAGIC:
        return FileType.DICOM
    if head[NIFTI1_MAGIC_OFFSET:SNIFF_LENGTH] == NIFTI1_MAGIC:
        return FileType.NIFTI
    return None


def detect_format(filename: str, head: bytes = b"") -> FileType:
    """Decide which decoder should handle a file.

    Args:
        filename: Name of the file; its extension takes precedence.
        head: Leading bytes of the file, used when the extension is unknown.

    Returns:
        Exactly one FileType.

    Raises:
        UnsupportedFormat: If neither the extension nor the content match.

    Example:
        >>> detect_format("brain.nii.gz")
        <FileType.NIFTI: 'nifti'>
    """
    file_type = detect_from_extension(filename)
    if file_type is not None:
        logger.debug(f"Detected {file_type.value} from extension of {filename}")
        return file_type

    file_type = sniff_content(head)
    if file_type is not None:
        logger.debug(f"Detected {file_type.value} from content of {filename}")
        return file_type

    raise UnsupportedFormat(f"Unsupported file format: {filename}")
