"""Viewer session state: one image slot and one mask slot.

Decoding runs on a thread pool and reports back through a Future. Each
slot keeps a generation counter; a load that finishes after a newer load
(or a clear) was issued for the same slot is discarded, so the latest
request always wins. Decode workers share no mutable state; only the slot
assignment at the end of a load takes the session lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from medslice.buffer import LoadedFile
from medslice.config import SESSION_MAX_WORKERS
from medslice.formats import load_bytes
from medslice.normalize import WindowLevel
from medslice.palette import colorize_labels
from medslice.stack import assemble_stack
from medslice.volume import (
    Orientation,
    SliceResult,
    default_slice_indices,
    extract_slice,
    render_slice,
)

logger = logging.getLogger(__name__)


class Slot(str, Enum):
    """Which loaded file a request targets."""

    IMAGE = "image"
    MASK = "mask"


@dataclass
class SlotState:
    """Current contents of one slot.

    Attributes:
        file: Last successfully loaded file, or None.
        window: Window/level applied when rendering this slot.
        error: Message from the most recent failed load, cleared on success.
        generation: Incremented by every load or clear request.
        loading: True while the latest request is still decoding.
    """

    file: LoadedFile | None = None
    window: WindowLevel = field(default_factory=WindowLevel)
    error: str | None = None
    generation: int = 0
    loading: bool = False


@dataclass(frozen=True, eq=False)
class RenderedView:
    """Image slice plus optional mask slice and its RGBA label overlay.

    ``overlay`` is None when no mask is loaded or when the mask slice does
    not have the image slice's shape.
    """

    image: SliceResult
    mask: SliceResult | None = None
    overlay: np.ndarray | None = None


class ViewerSession:
    """Holds the image and mask slots of one viewer.

    Example:
        >>> with ViewerSession() as session:
        ...     session.load(Slot.IMAGE, "brain.nii.gz", raw)
        ...     view = session.render("axial", 77)
    """

    def __init__(self, max_workers: int = SESSION_MAX_WORKERS):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="medslice-decode"
        )
        self._lock = threading.Lock()
        self._slots = {slot: SlotState() for slot in Slot}

    def __enter__(self) -> ViewerSession:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the decode pool, waiting for running decodes."""
        self._executor.shutdown(wait=True)

    def state(self, slot: Slot | str) -> SlotState:
        return self._slots[Slot(slot)]

    def get_file(self, slot: Slot | str) -> LoadedFile | None:
        return self.state(slot).file

    def _begin(self, slot: Slot) -> int:
        with self._lock:
            state = self._slots[slot]
            state.generation += 1
            state.loading = True
            return state.generation

    def _finish(
        self,
        slot: Slot,
        generation: int,
        loaded: LoadedFile | None = None,
        error: str | None = None,
    ) -> None:
        with self._lock:
            state = self._slots[slot]
            if generation != state.generation:
                logger.debug(
                    f"Discarding superseded {slot.value} load "
                    f"(generation {generation}, current {state.generation})"
                )
                return
            state.loading = False
            state.error = error
            if loaded is not None:
                state.file = loaded

    def _run(self, slot: Slot, generation: int, label: str, fn: Callable, *args) -> LoadedFile:
        try:
            loaded = fn(*args)
        except Exception as e:
            logger.error(f"Failed to load {label} into {slot.value} slot: {e}")
            self._finish(slot, generation, error=str(e))
            raise
        self._finish(slot, generation, loaded=loaded)
        return loaded

    def submit_load(self, slot: Slot | str, filename: str, raw: bytes) -> Future:
        """Decode a file in the background and place it in ``slot``.

        Returns:
            Future resolving to the LoadedFile, or raising the decode error.
            The slot is updated before the Future completes, unless a newer
            request for the same slot superseded this one.
        """
        slot = Slot(slot)
        generation = self._begin(slot)
        return self._executor.submit(
            self._run, slot, generation, filename, load_bytes, filename, raw
        )

    def submit_stack(self, slot: Slot | str, files: Iterable[tuple[str, bytes]]) -> Future:
        """Assemble single-slice files in the background into ``slot``."""
        slot = Slot(slot)
        files = list(files)
        generation = self._begin(slot)
        label = f"stack of {len(files)} files"
        return self._executor.submit(
            self._run, slot, generation, label, assemble_stack, files
        )

    def load(self, slot: Slot | str, filename: str, raw: bytes) -> LoadedFile:
        """Decode a file on the calling thread and place it in ``slot``."""
        slot = Slot(slot)
        generation = self._begin(slot)
        return self._run(slot, generation, filename, load_bytes, filename, raw)

    def clear(self, slot: Slot | str) -> None:
        """Remove the file from ``slot`` and supersede any pending load."""
        slot = Slot(slot)
        with self._lock:
            state = self._slots[slot]
            state.generation += 1
            state.file = None
            state.error = None
            state.loading = False
        logger.info(f"Cleared {slot.value} slot")

    def set_window_level(self, slot: Slot | str, window: WindowLevel) -> None:
        self.state(slot).window = window

    def reset_view(self) -> None:
        """Restore the default window/level on both slots."""
        for state in self._slots.values():
            state.window = WindowLevel()

    def default_indices(self) -> dict[Orientation, int]:
        """Middle slice of each plane of the current image."""
        image = self._require_image()
        return default_slice_indices(image.data)

    def _require_image(self) -> LoadedFile:
        image = self.get_file(Slot.IMAGE)
        if image is None:
            raise ValueError("No image loaded")
        return image

    def render(self, orientation: Orientation | str, index: int) -> RenderedView:
        """Render the image slot, with the mask slot overlaid when loaded.

        Raises:
            ValueError: If the image slot is empty.
        """
        image = self._require_image()
        image_state = self.state(Slot.IMAGE)
        image_slice = render_slice(image.data, orientation, index, image_state.window)

        mask = self.get_file(Slot.MASK)
        if mask is None:
            return RenderedView(image=image_slice)

        mask_state = self.state(Slot.MASK)
        mask_raw = extract_slice(mask.data, orientation, index)
        overlay = None
        if mask_raw.samples.shape == image_slice.pixels.shape:
            overlay = colorize_labels(mask_raw.samples)
        else:
            logger.warning(
                f"Mask slice {mask_raw.samples.shape} does not match image slice "
                f"{image_slice.pixels.shape}, skipping overlay"
            )
        mask_slice = SliceResult(
            pixels=mask_state.window.apply(mask_raw.samples),
            source_min=mask_raw.min,
            source_max=mask_raw.max,
        )
        return RenderedView(
            image=image_slice,
            mask=mask_slice,
            overlay=overlay,
        )
