"""Assemble single-slice files into one 3D volume.

Slices are ordered by filename, decoded independently, checked for a
common in-plane shape and copied into one contiguous buffer, slice ``z``
occupying ``[z * width * height, (z + 1) * width * height)``.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

import numpy as np

from medslice.buffer import ElementKind, LoadedFile, VoxelBuffer
from medslice.errors import DimensionMismatch
from medslice.formats import load_bytes

logger = logging.getLogger(__name__)


def stack_buffers(slices: list[VoxelBuffer], filenames: list[str]) -> VoxelBuffer:
    """Stack already decoded single-slice buffers in the given order.

    Args:
        slices: Buffers of depth 1 sharing one ``(width, height)``.
        filenames: Source filename of each buffer, recorded in metadata.

    Returns:
        VoxelBuffer with dimensions ``(width, height, len(slices))`` whose
        element kind is the widest kind among the inputs.

    Raises:
        ValueError: If no slices are given.
        DimensionMismatch: If a slice has depth other than 1 or its
            in-plane shape differs from the first slice.
    """
    if not slices:
        raise ValueError("Cannot assemble a stack from zero slices")

    width, height = slices[0].width, slices[0].height
    for name, buf in zip(filenames, slices):
        if buf.depth != 1:
            raise DimensionMismatch(
                f"{name} has {buf.depth} slices; stacks take single-slice files"
            )
        if (buf.width, buf.height) != (width, height):
            raise DimensionMismatch(
                f"{name} is {buf.width}x{buf.height}, expected {width}x{height} "
                f"like {filenames[0]}"
            )

    kind = ElementKind.promote(*(buf.kind for buf in slices))
    plane = width * height
    elements = np.empty(plane * len(slices), dtype=kind.dtype)
    for z, buf in enumerate(slices):
        elements[z * plane:(z + 1) * plane] = buf.elements

    return VoxelBuffer(
        elements=elements,
        dimensions=(width, height, len(slices)),
        spacing=slices[0].spacing,
        metadata={
            "source_files": list(filenames),
            "slice_count": len(slices),
        },
    )


def assemble_stack(files: Iterable[tuple[str, bytes]]) -> LoadedFile:
    """Decode named single-slice files and stack them by filename order.

    The output does not depend on the order of ``files``: inputs are
    sorted lexicographically by filename before decoding.

    Args:
        files: ``(filename, raw bytes)`` pairs, each decodable by
            :func:`medslice.formats.load_bytes` into a depth 1 buffer.

    Returns:
        LoadedFile whose filename is the first sorted filename and whose
        file type is the type shared by the slices (the first slice's type
        when they differ).

    Raises:
        ValueError: If ``files`` is empty.
        DimensionMismatch: If slice shapes disagree.
        MedsliceError: If any slice fails to decode.

    Example:
        >>> files = [(p.name, p.read_bytes()) for p in Path("series").glob("*.png")]
        >>> assemble_stack(files).dimensions
        (256, 256, 40)
    """
    ordered = sorted(files, key=lambda item: item[0])
    if not ordered:
        raise ValueError("Cannot assemble a stack from zero files")

    loaded = [load_bytes(name, raw) for name, raw in ordered]
    filenames = [item.filename for item in loaded]
    volume = stack_buffers([item.data for item in loaded], filenames)

    file_types = {item.file_type for item in loaded}
    file_type = loaded[0].file_type
    if len(file_types) > 1:
        logger.debug(
            f"Stack mixes file types {sorted(t.value for t in file_types)}, "
            f"tagging as {file_type.value}"
        )

    logger.info(
        f"Assembled {len(loaded)} slices into {volume.dimensions} {volume.kind.value} volume"
    )
    return LoadedFile(
        data=volume,
        filename=filenames[0],
        file_type=file_type,
        file_size_bytes=sum(item.file_size_bytes for item in loaded),
    )


def load_stack_directory(directory: str | Path, pattern: str = "*") -> LoadedFile:
    """Assemble every file in ``directory`` matching ``pattern``.

    Args:
        directory: Folder containing one file per slice.
        pattern: Glob pattern selecting the slice files.

    Raises:
        FileNotFoundError: If the directory does not exist or has no
            matching files.
    """
    directory = Path(directory)

    if not directory.is_dir():
        raise FileNotFoundError(f"Directory not found: {directory}")

    paths = [p for p in directory.glob(pattern) if p.is_file()]
    if not paths:
        raise FileNotFoundError(f"No files matching {pattern!r} in {directory}")

    return assemble_stack((p.name, p.read_bytes()) for p in paths)
