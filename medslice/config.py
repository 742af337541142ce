"""Configuration constants for medslice.

All defaults and tunables are centralized here.
"""

# ==========================================
# Window/Level
# ==========================================

# Default display window for both the image and the mask slot
DEFAULT_WINDOW_CENTER = 128.0
DEFAULT_WINDOW_WIDTH = 256.0

# ==========================================
# Label Overlay
# ==========================================

# 40% opacity for mask labels drawn over the image
MASK_OVERLAY_ALPHA = 102

# ==========================================
# Session
# ==========================================

# Background threads used for decoding in ViewerSession
SESSION_MAX_WORKERS = 2

# ==========================================
# Format Constants
# ==========================================

GZIP_MAGIC = b"\x1f\x8b"
NPY_MAGIC = b"\x93NUMPY"
DICOM_MAGIC = b"DICM"
DICOM_PREAMBLE_LENGTH = 128
NIFTI1_MAGIC = b"n+1\x00"
NIFTI1_MAGIC_OFFSET = 344
NIFTI1_HEADER_SIZE = 348
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

# .npy data section starts on this boundary
NPY_ALIGNMENT = 16
