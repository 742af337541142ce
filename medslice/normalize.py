"""Intensity normalization of slices for 8-bit display.

Two mappings are provided: window/level, driven by a center and width
chosen by the viewer, and min/max, which stretches the slice's own range.
Both are pure functions of their inputs.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from medslice.config import DEFAULT_WINDOW_CENTER, DEFAULT_WINDOW_WIDTH


@dataclass(frozen=True)
class WindowLevel:
    """Linear contrast window.

    Attributes:
        center: Intensity mapped to mid-gray.
        width: Size of the intensity range spread over 0-255.
    """

    center: float = DEFAULT_WINDOW_CENTER
    width: float = DEFAULT_WINDOW_WIDTH

    def __post_init__(self) -> None:
        if self.width < 0:
            raise ValueError(f"Window width must be non-negative, got {self.width}")

    @property
    def lower(self) -> float:
        return self.center - self.width / 2

    @property
    def upper(self) -> float:
        return self.center + self.width / 2

    @classmethod
    def from_range(cls, minimum: float, maximum: float) -> WindowLevel:
        """Window spanning ``[minimum, maximum]``, e.g. a slice's observed range."""
        return cls(center=(minimum + maximum) / 2, width=maximum - minimum)

    def apply(self, samples: np.ndarray) -> np.ndarray:
        return apply_window_level(samples, self.center, self.width)


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def apply_window_level(samples: np.ndarray, center: float, width: float) -> np.ndarray:
    """Map raw intensities to 0-255 through a window/level pair.

    With ``lo = center - width / 2`` and ``hi = center + width / 2``, values
    at or below ``lo`` become 0, values at or above ``hi`` become 255 and
    values in between are scaled linearly and rounded half up. A zero width
    is a binary threshold: values above 0 become 255, everything else 0,
    which suits label masks.

    Args:
        samples: Raw slice samples of any numeric dtype and shape.
        center: Window center.
        width: Window width.

    Returns:
        uint8 array with the same shape as ``samples``.

    Example:
        >>> apply_window_level(np.array([0, 100, 200]), center=100, width=200)
        array([  0, 128, 255], dtype=uint8)
    """
    values = np.asarray(samples, dtype=np.float64)
    lower = center - width / 2
    upper = center + width / 2

    if upper == lower:
        return np.where(values > 0, 255, 0).astype(np.uint8)

    scaled = _round_half_up((values - lower) / (upper - lower) * 255)
    scaled = np.nan_to_num(scaled, nan=0.0)
    out = np.clip(scaled, 0, 255)
    out[values <= lower] = 0
    out[values >= upper] = 255
    return out.astype(np.uint8)


def normalize_slice(slice_2d: np.ndarray) -> np.ndarray:
    """Normalize 2D slice to 0-255 range.

    Performs min-max normalization on the input slice and scales to
    uint8 range (0-255), rounding half up. Handles constant-value slices by
    returning an array of zeros.

    Args:
        slice_2d: 2D numpy array representing an image slice.

    Returns:
        Normalized and scaled slice as uint8 with values in range [0, 255].
        Returns zeros array for constant-value inputs.

    Example:
        >>> import numpy as np
        >>> slice_data = np.array([[0, 100], [50, 200]], dtype=np.float32)
        >>> normalized = normalize_slice(slice_data)
        >>> normalized.dtype
        dtype('uint8')
    """
    values = np.asarray(slice_2d, dtype=np.float64)
    low, high = values.min(), values.max()
    if high > low:
        normalized = (values - low) / (high - low)
    else:
        normalized = np.zeros_like(values)  # handle constant slice
    return _round_half_up(normalized * 255).astype(np.uint8)
