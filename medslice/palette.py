"""Label colors for segmentation mask overlays.

Independent of decoding: mask samples are looked up here only after a
slice has been extracted.
"""

import numpy as np

from medslice.config import MASK_OVERLAY_ALPHA

LABEL_PALETTE = np.array(
    [
        (230, 25, 75),  # red
        (60, 180, 75),  # green
        (255, 225, 25),  # yellow
        (0, 130, 200),  # blue
        (245, 130, 48),  # orange
        (145, 30, 180),  # purple
        (70, 240, 240),  # cyan
        (240, 50, 230),  # magenta
        (210, 245, 60),  # lime
        (250, 190, 190),  # pink
        (0, 128, 128),  # teal
        (230, 190, 255),  # lavender
        (170, 110, 40),  # brown
        (255, 250, 200),  # beige
        (128, 0, 0),  # maroon
        (170, 255, 195),  # mint
        (128, 128, 0),  # olive
        (255, 215, 180),  # apricot
        (0, 0, 128),  # navy
        (255, 105, 180),  # hot pink
    ],
    dtype=np.uint8,
)


def label_color(label: int) -> tuple[int, int, int]:
    """Return the RGB color for a label value.

    Labels start at 1 and cycle through the palette; labels <= 0 are
    background and map to black.

    Example:
        >>> label_color(1)
        (230, 25, 75)
        >>> label_color(21) == label_color(1)
        True
    """
    label = int(label)
    if label <= 0:
        return (0, 0, 0)
    r, g, b = LABEL_PALETTE[(label - 1) % len(LABEL_PALETTE)]
    return (int(r), int(g), int(b))


def colorize_labels(mask_slice: np.ndarray, alpha: int = MASK_OVERLAY_ALPHA) -> np.ndarray:
    """Build an RGBA overlay from a 2D slice of label values.

    Args:
        mask_slice: 2D array of labels. Fractional values are truncated.
        alpha: Opacity for labeled pixels; background stays transparent.

    Returns:
        uint8 array of shape ``mask_slice.shape + (4,)``.
    """
    labels = np.nan_to_num(np.asarray(mask_slice, dtype=np.float64)).astype(np.int64)
    overlay = np.zeros(labels.shape + (4,), dtype=np.uint8)
    labeled = labels > 0
    overlay[labeled, :3] = LABEL_PALETTE[(labels[labeled] - 1) % len(LABEL_PALETTE)]
    overlay[labeled, 3] = alpha
    return overlay
