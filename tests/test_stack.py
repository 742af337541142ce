"""Unit tests for the stack assembler."""

import random

import numpy as np
import pytest

from medslice.buffer import ElementKind, FileType, VoxelBuffer
from medslice.errors import DimensionMismatch, InvalidMagic
from medslice.stack import assemble_stack, load_stack_directory, stack_buffers
from tests.builders import dicom_bytes, nifti_bytes, npy_bytes, png_bytes


def _png_series(count: int, width: int = 4, height: int = 3) -> list[tuple[str, bytes]]:
    """Slices whose every pixel equals the slice number times 10."""
    return [
        (f"slice_{i:03d}.png", png_bytes(np.full((height, width), i * 10, dtype=np.uint8)))
        for i in range(count)
    ]


class TestAssembleStack:
    """Tests for assemble_stack()."""

    def test_depth_equals_file_count(self) -> None:
        loaded = assemble_stack(_png_series(5))

        assert loaded.dimensions == (4, 3, 5)
        assert loaded.file_type is FileType.IMAGE
        assert loaded.data.kind is ElementKind.UINT8

    def test_slices_copied_in_order(self) -> None:
        loaded = assemble_stack(_png_series(3))
        volume = loaded.data.as_volume()

        for z in range(3):
            assert np.all(volume[z] == z * 10)

    def test_order_independent_of_input_order(self) -> None:
        """Input is sorted by filename, so shuffling changes nothing."""
        files = _png_series(6)
        shuffled = files[:]
        random.Random(3).shuffle(shuffled)

        expected = assemble_stack(files)
        actual = assemble_stack(shuffled)

        np.testing.assert_array_equal(actual.data.elements, expected.data.elements)
        assert actual.data.metadata["source_files"] == [name for name, _ in files]

    def test_sort_is_lexicographic(self) -> None:
        files = [
            ("b.png", png_bytes(np.full((2, 2), 2, dtype=np.uint8))),
            ("a10.png", png_bytes(np.full((2, 2), 10, dtype=np.uint8))),
            ("a2.png", png_bytes(np.full((2, 2), 20, dtype=np.uint8))),
        ]
        loaded = assemble_stack(files)

        assert loaded.data.metadata["source_files"] == ["a10.png", "a2.png", "b.png"]
        assert loaded.data.as_volume()[:, 0, 0].tolist() == [10, 20, 2]
        assert loaded.filename == "a10.png"

    def test_dimension_mismatch_raises(self) -> None:
        files = _png_series(2) + [("slice_999.png", png_bytes(np.zeros((5, 5), dtype=np.uint8)))]

        with pytest.raises(DimensionMismatch, match="slice_999.png"):
            assemble_stack(files)

    def test_multi_slice_input_rejected(self) -> None:
        files = [
            ("a.png", png_bytes(np.zeros((2, 2), dtype=np.uint8))),
            ("b.nii", nifti_bytes(np.zeros((2, 2, 3), dtype=np.uint8))),
        ]

        with pytest.raises(DimensionMismatch, match="single-slice"):
            assemble_stack(files)

    def test_widest_type_wins(self) -> None:
        """uint8 PNG + uint16 DICOM + float32 npy -> float32."""
        files = [
            ("1.png", png_bytes(np.full((4, 3), 7, dtype=np.uint8))),
            ("2.dcm", dicom_bytes(np.full((4, 3), 4000, dtype=np.uint16), rows=4, columns=3)),
            ("3.npy", npy_bytes(np.full((4, 3), 0.5, dtype=np.float32))),
        ]
        loaded = assemble_stack(files)
        volume = loaded.data.as_volume()

        assert loaded.data.kind is ElementKind.FLOAT32
        assert volume[0, 0, 0] == 7
        assert volume[1, 0, 0] == 4000
        assert volume[2, 0, 0] == pytest.approx(0.5)

    def test_uint16_beats_uint8(self) -> None:
        files = [
            ("1.png", png_bytes(np.zeros((4, 3), dtype=np.uint8))),
            ("2.dcm", dicom_bytes(np.full((4, 3), 300, dtype=np.uint16), rows=4, columns=3)),
        ]
        loaded = assemble_stack(files)

        assert loaded.data.kind is ElementKind.UINT16
        assert loaded.file_type is FileType.IMAGE  # first slice's type when mixed

    def test_empty_input_raises(self) -> None:
        with pytest.raises(ValueError, match="zero"):
            assemble_stack([])

    def test_decode_failure_fails_whole_stack(self) -> None:
        files = _png_series(2) + [("bad.npy", b"NOTNPY")]

        with pytest.raises(InvalidMagic):
            assemble_stack(files)


class TestStackBuffers:
    """Tests for stack_buffers()."""

    def test_spacing_from_first_slice(self) -> None:
        slices = [
            VoxelBuffer(np.zeros(4, dtype=np.uint8), (2, 2, 1), spacing=(0.5, 0.5, 2.0)),
            VoxelBuffer(np.ones(4, dtype=np.uint8), (2, 2, 1)),
        ]
        buf = stack_buffers(slices, ["a", "b"])

        assert buf.spacing == (0.5, 0.5, 2.0)
        assert buf.metadata["slice_count"] == 2


class TestLoadStackDirectory:
    """Tests for load_stack_directory()."""

    def test_loads_matching_files(self, tmp_path) -> None:
        for name, raw in _png_series(4):
            (tmp_path / name).write_bytes(raw)
        (tmp_path / "notes.txt").write_text("ignored")

        loaded = load_stack_directory(tmp_path, "*.png")

        assert loaded.dimensions == (4, 3, 4)

    def test_missing_directory_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError, match="Directory not found"):
            load_stack_directory(tmp_path / "nope")

    def test_no_matching_files_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError, match="No files matching"):
            load_stack_directory(tmp_path, "*.dcm")
