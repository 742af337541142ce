"""Unit tests for the PNG/JPEG decoder."""

import io

import numpy as np
import pytest
from PIL import Image

from medslice.buffer import ElementKind
from medslice.errors import InvalidFormat
from medslice.formats import load_bytes
from medslice.formats.raster import decode_raster, rgba_to_grayscale
from tests.builders import png_bytes


class TestRgbaToGrayscale:
    """Tests for the luminance conversion."""

    @pytest.mark.parametrize(
        "rgb, expected",
        [
            ((255, 0, 0), 76),  # 76.245
            ((0, 255, 0), 150),  # 149.685
            ((0, 0, 255), 29),  # 29.07
            ((255, 255, 255), 255),
            ((0, 0, 0), 0),
            ((100, 100, 100), 100),
        ],
    )
    def test_luminance_weights(self, rgb, expected) -> None:
        rgba = np.array([[[*rgb, 255]]], dtype=np.uint8)
        assert rgba_to_grayscale(rgba)[0, 0] == expected

    def test_rounds_to_nearest(self) -> None:
        """1.495 rounds down, 3.99 rounds up."""
        rgba = np.array([[[5, 0, 0, 255], [0, 0, 35, 255]]], dtype=np.uint8)
        gray = rgba_to_grayscale(rgba)

        assert gray[0, 0] == 1
        assert gray[0, 1] == 4  # 3.99

    def test_alpha_is_ignored(self) -> None:
        rgba = np.array([[[200, 200, 200, 0]]], dtype=np.uint8)
        assert rgba_to_grayscale(rgba)[0, 0] == 200


class TestDecodeRaster:
    """Tests for decode_raster()."""

    def test_png_dimensions_are_width_height(self) -> None:
        image = np.zeros((3, 5), dtype=np.uint8)  # 3 rows, 5 columns
        buf = decode_raster(png_bytes(image))

        assert buf.dimensions == (5, 3, 1)
        assert buf.kind is ElementKind.UINT8

    def test_pixels_are_row_major(self) -> None:
        image = np.arange(12, dtype=np.uint8).reshape(3, 4) * 10
        buf = decode_raster(png_bytes(image))

        np.testing.assert_array_equal(buf.elements, image.ravel())

    def test_rgb_png_converted_to_gray(self) -> None:
        image = np.zeros((1, 2, 3), dtype=np.uint8)
        image[0, 0] = (255, 0, 0)
        image[0, 1] = (0, 255, 0)
        buf = decode_raster(png_bytes(image))

        np.testing.assert_array_equal(buf.elements, [76, 150])
        assert buf.metadata["originalFormat"] == "PNG"

    def test_jpeg_decodes(self) -> None:
        out = io.BytesIO()
        Image.new("RGB", (8, 6), color=(128, 128, 128)).save(out, format="JPEG")
        buf = decode_raster(out.getvalue())

        assert buf.dimensions == (8, 6, 1)
        assert abs(int(buf.elements[0]) - 128) <= 2

    def test_invalid_image_raises(self) -> None:
        with pytest.raises(InvalidFormat, match="Failed to load image"):
            decode_raster(b"definitely not an image")

    def test_decompression_bomb_raises_invalid_format(self, monkeypatch) -> None:
        raw = png_bytes(np.zeros((20, 20), dtype=np.uint8))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

        with pytest.raises(InvalidFormat, match="Failed to load image"):
            decode_raster(raw)

    def test_load_bytes_tags_image(self) -> None:
        loaded = load_bytes("slice.png", png_bytes(np.zeros((2, 2), dtype=np.uint8)))

        assert loaded.file_type.value == "image"
