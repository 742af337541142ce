"""Orthogonal slice extraction (multi-planar reconstruction).

Planes are pulled out of a :class:`VoxelBuffer` whose voxel ``(x, y, z)``
is stored at ``z * width * height + y * width + x``:

- axial fixes z and spans ``width x height``
- sagittal fixes x and spans ``height x depth``
- coronal fixes y and spans ``width x depth``

Extracted samples are returned as a 2D array of shape
``(slice_height, slice_width)``, so ``samples.ravel()`` is the flat plane
with the first in-plane axis varying fastest.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from medslice.buffer import VoxelBuffer
from medslice.normalize import WindowLevel, apply_window_level, normalize_slice


class Orientation(str, Enum):
    """Anatomical slicing plane."""

    AXIAL = "axial"
    SAGITTAL = "sagittal"
    CORONAL = "coronal"


@dataclass(frozen=True, eq=False)
class RawSlice:
    """Raw samples of one extracted plane.

    Attributes:
        samples: 2D array ``(slice_height, slice_width)`` in the source
            element type.
        orientation: Plane the samples were taken from.
        index: Slice index actually used, after clamping.
        min: Smallest sample in the plane.
        max: Largest sample in the plane.
    """

    samples: np.ndarray
    orientation: Orientation
    index: int
    min: float
    max: float

    @property
    def width(self) -> int:
        return self.samples.shape[1]

    @property
    def height(self) -> int:
        return self.samples.shape[0]


@dataclass(frozen=True, eq=False)
class SliceResult:
    """Display-ready slice.

    Attributes:
        pixels: uint8 array ``(slice_height, slice_width)``.
        source_min: Smallest raw sample before normalization.
        source_max: Largest raw sample before normalization.
    """

    pixels: np.ndarray
    source_min: float
    source_max: float


def slice_count(buffer: VoxelBuffer, orientation: Orientation | str) -> int:
    """Number of slices along the sweep axis of ``orientation``.

    Example:
        >>> slice_count(buffer, "sagittal") == buffer.width
        True
    """
    orientation = Orientation(orientation)
    if orientation is Orientation.AXIAL:
        return buffer.depth
    if orientation is Orientation.SAGITTAL:
        return buffer.width
    if orientation is Orientation.CORONAL:
        return buffer.height
    raise AssertionError(f"unhandled orientation {orientation!r}")


def clamp_index(buffer: VoxelBuffer, orientation: Orientation | str, index: int) -> int:
    """Clamp ``index`` into ``[0, slice_count - 1]``."""
    return max(0, min(slice_count(buffer, orientation) - 1, int(index)))


def default_slice_indices(buffer: VoxelBuffer) -> dict[Orientation, int]:
    """Middle slice of each plane, used when a volume is first shown."""
    return {
        orientation: slice_count(buffer, orientation) // 2
        for orientation in Orientation
    }


def extract_slice(
    buffer: VoxelBuffer,
    orientation: Orientation | str,
    index: int,
) -> RawSlice:
    """Extract a 2D plane from a voxel buffer.

    Args:
        buffer: Source volume (2D sources have depth 1).
        orientation: "axial", "sagittal" or "coronal".
        index: Zero-based slice index; clamped to the valid range of the
            plane's sweep axis.

    Returns:
        RawSlice holding a copy of the plane and its observed min/max.

    Example:
        >>> buf = VoxelBuffer(np.arange(24, dtype=np.int32), (4, 3, 2))
        >>> extract_slice(buf, "axial", 1).samples.ravel()[:4]
        array([12, 13, 14, 15], dtype=int32)
    """
    orientation = Orientation(orientation)
    index = clamp_index(buffer, orientation, index)
    volume = buffer.as_volume()  # (depth, height, width)

    if orientation is Orientation.AXIAL:
        plane = volume[index, :, :]
    elif orientation is Orientation.SAGITTAL:
        plane = volume[:, :, index]
    elif orientation is Orientation.CORONAL:
        plane = volume[:, index, :]
    else:
        raise AssertionError(f"unhandled orientation {orientation!r}")

    samples = np.ascontiguousarray(plane)
    return RawSlice(
        samples=samples,
        orientation=orientation,
        index=index,
        min=samples.min().item(),
        max=samples.max().item(),
    )


def render_slice(
    buffer: VoxelBuffer,
    orientation: Orientation | str,
    index: int,
    window: WindowLevel | None = None,
) -> SliceResult:
    """Extract a plane and normalize it for display.

    Args:
        buffer: Source volume.
        orientation: Slicing plane.
        index: Slice index, clamped like :func:`extract_slice`.
        window: Window/level to apply. None stretches the slice's own
            min/max range over 0-255.

    Returns:
        SliceResult with uint8 pixels and the raw slice range.
    """
    raw = extract_slice(buffer, orientation, index)
    if window is None:
        pixels = normalize_slice(raw.samples)
    else:
        pixels = apply_window_level(raw.samples, window.center, window.width)
    return SliceResult(pixels=pixels, source_min=raw.min, source_max=raw.max)
