"""Tests for viewer session state."""

import threading

import numpy as np
import pytest

import medslice.session as session_module
from medslice.errors import InvalidMagic
from medslice.normalize import WindowLevel
from medslice.session import Slot, ViewerSession
from medslice.volume import Orientation
from tests.builders import npy_bytes, png_bytes


@pytest.fixture
def session():
    with ViewerSession() as s:
        yield s


@pytest.fixture
def volume_raw() -> bytes:
    """4x3x2 volume; a 3D .npy shape is read as (width, height, depth)."""
    return npy_bytes(np.arange(4 * 3 * 2, dtype=np.uint8).reshape(4, 3, 2))


@pytest.fixture
def mask_raw() -> bytes:
    mask = np.zeros(4 * 3 * 2, dtype=np.uint8)
    mask[[6, 18]] = 1  # voxel (2, 1) on both slices
    return npy_bytes(mask.reshape(4, 3, 2))


class TestLoad:
    """Synchronous loading and clearing of slots."""

    def test_load_populates_slot(self, session, volume_raw) -> None:
        loaded = session.load(Slot.IMAGE, "vol.npy", volume_raw)

        assert session.get_file("image") is loaded
        assert loaded.dimensions == (4, 3, 2)
        assert session.state(Slot.IMAGE).error is None
        assert session.state(Slot.IMAGE).loading is False

    def test_clear_empties_slot(self, session, volume_raw) -> None:
        session.load(Slot.IMAGE, "vol.npy", volume_raw)
        session.clear(Slot.IMAGE)

        assert session.get_file(Slot.IMAGE) is None

    def test_failed_load_keeps_previous_file(self, session, volume_raw) -> None:
        previous = session.load(Slot.IMAGE, "vol.npy", volume_raw)

        with pytest.raises(InvalidMagic):
            session.load(Slot.IMAGE, "broken.npy", b"garbage")

        state = session.state(Slot.IMAGE)
        assert state.file is previous
        assert "Invalid NumPy file format" in state.error

    def test_slots_independent(self, session, volume_raw, mask_raw) -> None:
        session.load(Slot.IMAGE, "vol.npy", volume_raw)
        session.load(Slot.MASK, "mask.npy", mask_raw)
        session.clear(Slot.MASK)

        assert session.get_file(Slot.IMAGE) is not None
        assert session.get_file(Slot.MASK) is None


class TestBackgroundLoad:
    """Loads submitted to the decode pool."""

    def test_submit_load_resolves(self, session, volume_raw) -> None:
        future = session.submit_load(Slot.IMAGE, "vol.npy", volume_raw)
        loaded = future.result(timeout=10)

        assert session.get_file(Slot.IMAGE) is loaded

    def test_latest_request_wins(self, session, volume_raw) -> None:
        other = npy_bytes(np.zeros((5, 5), dtype=np.uint8))
        first = session.submit_load(Slot.IMAGE, "first.npy", volume_raw)
        second = session.submit_load(Slot.IMAGE, "second.npy", other)
        first.result(timeout=10)
        second.result(timeout=10)

        assert session.get_file(Slot.IMAGE).filename == "second.npy"

    def test_clear_supersedes_pending_load(self, volume_raw, monkeypatch) -> None:
        release = threading.Event()

        real_load = session_module.load_bytes

        def slow_load(filename, raw):
            release.wait(timeout=10)
            return real_load(filename, raw)

        monkeypatch.setattr(session_module, "load_bytes", slow_load)

        with ViewerSession() as session:
            future = session.submit_load(Slot.IMAGE, "vol.npy", volume_raw)
            session.clear(Slot.IMAGE)
            release.set()
            future.result(timeout=10)

            assert session.get_file(Slot.IMAGE) is None

    def test_submit_failure_sets_error(self, session) -> None:
        future = session.submit_load(Slot.MASK, "bad.npy", b"not numpy")

        with pytest.raises(InvalidMagic):
            future.result(timeout=10)
        assert session.state(Slot.MASK).error is not None
        assert session.get_file(Slot.MASK) is None

    def test_non_decode_failure_finishes_slot(self, session) -> None:
        """An empty stack raises ValueError; the slot still stops loading."""
        future = session.submit_stack(Slot.IMAGE, [])

        with pytest.raises(ValueError, match="zero"):
            future.result(timeout=10)
        state = session.state(Slot.IMAGE)
        assert state.loading is False
        assert "zero" in state.error
        assert state.file is None

    def test_submit_stack(self, session) -> None:
        files = [
            (f"s{i}.png", png_bytes(np.full((3, 4), i, dtype=np.uint8)))
            for i in range(3)
        ]
        loaded = session.submit_stack(Slot.IMAGE, files).result(timeout=10)

        assert loaded.dimensions == (4, 3, 3)
        assert session.get_file(Slot.IMAGE) is loaded


class TestRender:
    """Rendering the current slots."""

    def test_render_without_image_raises(self, session) -> None:
        with pytest.raises(ValueError, match="No image loaded"):
            session.render("axial", 0)

    def test_render_image_only(self, session, volume_raw) -> None:
        session.load(Slot.IMAGE, "vol.npy", volume_raw)
        session.set_window_level(Slot.IMAGE, WindowLevel(center=11.5, width=23))

        view = session.render("axial", 0)

        assert view.mask is None
        assert view.overlay is None
        assert view.image.pixels.shape == (3, 4)
        assert view.image.pixels[0, 0] == 0
        assert view.image.source_max == 11

    def test_render_with_mask_overlay(self, session, volume_raw, mask_raw) -> None:
        session.load(Slot.IMAGE, "vol.npy", volume_raw)
        session.load(Slot.MASK, "mask.npy", mask_raw)
        session.set_window_level(Slot.MASK, WindowLevel(center=0, width=0))

        view = session.render("axial", 1)

        assert view.mask.pixels[1, 2] == 255
        assert view.mask.pixels[0, 0] == 0
        assert view.overlay.shape == (3, 4, 4)
        assert view.overlay[1, 2, 3] > 0
        assert view.overlay[0, 0, 3] == 0

    def test_default_indices_are_middle_slices(self, session, volume_raw) -> None:
        session.load(Slot.IMAGE, "vol.npy", volume_raw)

        indices = session.default_indices()

        assert indices[Orientation.AXIAL] == 1
        assert indices[Orientation.SAGITTAL] == 2
        assert indices[Orientation.CORONAL] == 1

    def test_reset_view_restores_default_window(self, session) -> None:
        session.set_window_level(Slot.IMAGE, WindowLevel(center=40, width=400))
        session.reset_view()

        assert session.state(Slot.IMAGE).window == WindowLevel()

    def test_mismatched_mask_has_no_overlay(self, session, volume_raw) -> None:
        session.load(Slot.IMAGE, "vol.npy", volume_raw)
        session.load(Slot.MASK, "mask.npy", npy_bytes(np.ones((5, 5), dtype=np.uint8)))

        view = session.render("axial", 0)

        assert view.image.pixels.shape == (3, 4)
        assert view.mask.pixels.shape == (5, 5)
        assert view.overlay is None
