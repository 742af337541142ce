"""Shared pytest fixtures."""

import numpy as np
import pytest


@pytest.fixture
def analytic_volume() -> np.ndarray:
    """Flat 5x4x3 samples where each voxel holds its own linear index."""
    width, height, depth = 5, 4, 3
    return np.arange(width * height * depth, dtype=np.int32)
