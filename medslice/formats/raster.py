"""PNG/JPEG decoder producing 8-bit grayscale slices."""

import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from medslice.buffer import VoxelBuffer
from medslice.errors import InvalidFormat

# ITU-R BT.601 luma weights
LUMINANCE_WEIGHTS = (0.299, 0.587, 0.114)


def rgba_to_grayscale(rgba: np.ndarray) -> np.ndarray:
    """Convert an (H, W, 4) RGBA array to uint8 luminance.

    Alpha is ignored. Rounds half up to the nearest integer.

    Example:
        >>> rgba_to_grayscale(np.array([[[255, 0, 0, 255]]], dtype=np.uint8))
        array([[76]], dtype=uint8)
    """
    rgb = rgba[..., :3].astype(np.float64)
    gray = rgb @ np.array(LUMINANCE_WEIGHTS)
    return np.clip(np.floor(gray + 0.5), 0, 255).astype(np.uint8)


def decode_raster(raw: bytes) -> VoxelBuffer:
    """Decode a PNG or JPEG image into a single grayscale slice.

    Args:
        raw: Encoded image bytes.

    Returns:
        uint8 VoxelBuffer with dimensions ``(width, height, 1)``.

    Raises:
        InvalidFormat: If Pillow cannot identify or decode the image, or
            the image exceeds Pillow's decompression bomb limit.
    """
    try:
        with Image.open(io.BytesIO(raw)) as img:
            source_mode = img.mode
            source_format = img.format
            rgba = np.asarray(img.convert("RGBA"))
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise InvalidFormat(f"Failed to load image: {e}") from e

    height, width = rgba.shape[:2]
    gray = rgba_to_grayscale(rgba)
    return VoxelBuffer(
        elements=gray.reshape(-1),
        dimensions=(width, height, 1),
        metadata={
            "width": width,
            "height": height,
            "originalFormat": source_format,
            "originalMode": source_mode,
        },
    )
