"""Uniform in-memory representation shared by every decoder.

Every supported file format converges on :class:`VoxelBuffer`: a flat,
read-only numpy array tagged with one :class:`ElementKind`, plus the
``(width, height, depth)`` dimensions. Samples are stored x-fastest, so the
voxel at ``(x, y, z)`` lives at ``z * width * height + y * width + x``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import numpy as np

from medslice.errors import ArrayLengthMismatch, UnsupportedFormat


class ElementKind(Enum):
    """Closed set of numeric sample types a buffer may hold."""

    UINT8 = "uint8"
    UINT16 = "uint16"
    INT16 = "int16"
    INT32 = "int32"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def dtype(self) -> np.dtype:
        """Native byte order numpy dtype for this kind."""
        return np.dtype(self.value)

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def is_float(self) -> bool:
        return self in (ElementKind.FLOAT32, ElementKind.FLOAT64)

    @classmethod
    def from_dtype(cls, dtype: Any) -> ElementKind:
        """Map a numpy dtype (any byte order) onto an element kind.

        Raises:
            UnsupportedFormat: If the dtype has no counterpart in the set.
        """
        name = np.dtype(dtype).name
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedFormat(f"Unsupported element type: {name}") from None

    @classmethod
    def promote(cls, *kinds: ElementKind) -> ElementKind:
        """Return the narrowest kind able to hold samples of every input.

        Follows numpy promotion, so float32 wins over uint16 which wins
        over uint8, and mixing int16 with uint16 yields int32.

        Example:
            >>> ElementKind.promote(ElementKind.UINT8, ElementKind.FLOAT32)
            <ElementKind.FLOAT32: 'float32'>
        """
        if not kinds:
            raise ValueError("promote() needs at least one element kind")
        dtype = kinds[0].dtype
        for kind in kinds[1:]:
            dtype = np.promote_types(dtype, kind.dtype)
        return cls.from_dtype(dtype)


class FileType(str, Enum):
    """Tag identifying which decoder produced a loaded file."""

    NIFTI = "nifti"
    NUMPY = "numpy"
    IMAGE = "image"
    DICOM = "dicom"


@dataclass(frozen=True, eq=False)
class VoxelBuffer:
    """Typed voxel samples plus their dimensions.

    Attributes:
        elements: Flat array of samples, x-fastest. Stored read-only in
            native byte order.
        dimensions: ``(width, height, depth)``; depth is 1 for 2D sources.
        spacing: Physical voxel size per axis.
        metadata: Format specific header fields, used only for labeling.

    Raises:
        ArrayLengthMismatch: If ``len(elements)`` differs from
            ``width * height * depth``.
        UnsupportedFormat: If the element dtype is outside ElementKind.

    Example:
        >>> buf = VoxelBuffer(np.zeros(16, dtype=np.uint8), (4, 4, 1))
        >>> buf.kind
        <ElementKind.UINT8: 'uint8'>
    """

    elements: np.ndarray
    dimensions: tuple[int, int, int]
    spacing: tuple[float, float, float] = (1.0, 1.0, 1.0)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        dims = tuple(int(d) for d in self.dimensions)
        if len(dims) != 3:
            raise ValueError(f"dimensions must have 3 entries, got {dims}")
        if any(d < 1 for d in dims):
            raise ValueError(f"dimensions must be positive, got {dims}")

        arr = np.asarray(self.elements)
        kind = ElementKind.from_dtype(arr.dtype)
        if arr.dtype != kind.dtype:
            arr = arr.astype(kind.dtype)
        arr = np.ascontiguousarray(arr).reshape(-1).view()
        arr.flags.writeable = False

        expected = dims[0] * dims[1] * dims[2]
        if arr.size != expected:
            raise ArrayLengthMismatch(
                f"Decoded {arr.size} elements but dimensions {dims} "
                f"require {expected}"
            )

        object.__setattr__(self, "elements", arr)
        object.__setattr__(self, "dimensions", dims)
        object.__setattr__(
            self, "spacing", tuple(float(s) for s in self.spacing)
        )

    @property
    def kind(self) -> ElementKind:
        return ElementKind.from_dtype(self.elements.dtype)

    @property
    def width(self) -> int:
        return self.dimensions[0]

    @property
    def height(self) -> int:
        return self.dimensions[1]

    @property
    def depth(self) -> int:
        return self.dimensions[2]

    @property
    def voxel_count(self) -> int:
        return self.elements.size

    @property
    def is_volume(self) -> bool:
        """True when the buffer has more than one slice."""
        return self.depth > 1

    def as_volume(self) -> np.ndarray:
        """Return a read-only ``(depth, height, width)`` view of the samples."""
        return self.elements.reshape(self.depth, self.height, self.width)


@dataclass
class LoadedFile:
    """A decoded buffer together with where it came from.

    Attributes:
        data: The decoded voxel buffer.
        filename: Original filename of the loaded file.
        file_type: Which decoder produced ``data``.
        file_size_bytes: Size of the raw input in bytes.
        load_time: Timestamp when the file was decoded.
    """

    data: VoxelBuffer
    filename: str
    file_type: FileType
    file_size_bytes: int = 0
    load_time: datetime = field(default_factory=datetime.now)

    @property
    def dimensions(self) -> tuple[int, int, int]:
        return self.data.dimensions

    @property
    def num_slices(self) -> int:
        """Return number of slices along the Z-axis."""
        return self.data.depth

    @property
    def file_size_mb(self) -> float:
        """Return file size in megabytes."""
        return self.file_size_bytes / (1024 * 1024)
