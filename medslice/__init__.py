"""medslice: medical image decoding and orthogonal slice extraction.

This package converts NIfTI, DICOM, NumPy and PNG/JPEG files into one
typed voxel buffer and extracts window/leveled 2D slices from it.

Exports:
    VoxelBuffer, ElementKind, LoadedFile, FileType: Data model
    detect_format: Pick a decoder from filename and leading bytes
    load_bytes, load_file: Detect and decode one file
    assemble_stack: Stack single-slice files into a volume
    extract_slice, render_slice: Pull a 2D plane out of a volume
    apply_window_level, normalize_slice, WindowLevel: Display normalization
    label_color, colorize_labels: Mask overlay colors
    ViewerSession, Slot: Image/mask slots with background decoding
"""

from medslice.buffer import ElementKind, FileType, LoadedFile, VoxelBuffer
from medslice.detect import detect_format
from medslice.errors import (
    ArrayLengthMismatch,
    DecompressionError,
    DimensionMismatch,
    HeaderParseError,
    InvalidFormat,
    InvalidMagic,
    MedsliceError,
    MissingPixelData,
    UnsupportedFormat,
)
from medslice.formats import decode_bytes, load_bytes, load_file
from medslice.normalize import WindowLevel, apply_window_level, normalize_slice
from medslice.palette import colorize_labels, label_color
from medslice.session import Slot, ViewerSession
from medslice.stack import assemble_stack, load_stack_directory
from medslice.volume import (
    Orientation,
    RawSlice,
    SliceResult,
    default_slice_indices,
    extract_slice,
    render_slice,
    slice_count,
)

__version__ = "0.1.0"

__all__ = [
    "ArrayLengthMismatch",
    "DecompressionError",
    "DimensionMismatch",
    "ElementKind",
    "FileType",
    "HeaderParseError",
    "InvalidFormat",
    "InvalidMagic",
    "LoadedFile",
    "MedsliceError",
    "MissingPixelData",
    "Orientation",
    "RawSlice",
    "SliceResult",
    "Slot",
    "UnsupportedFormat",
    "ViewerSession",
    "VoxelBuffer",
    "WindowLevel",
    "apply_window_level",
    "assemble_stack",
    "colorize_labels",
    "decode_bytes",
    "default_slice_indices",
    "detect_format",
    "extract_slice",
    "label_color",
    "load_bytes",
    "load_file",
    "load_stack_directory",
    "normalize_slice",
    "render_slice",
    "slice_count",
]
