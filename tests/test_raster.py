"""Tests for the RasterImage value type."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from conftest import solid, textured
from twenty_twenty.raster import RasterImage


class TestConstruction:
    def test_from_rgb_array(self) -> None:
        img = RasterImage(solid((1, 2, 3), size=(7, 5)))
        assert img.size == (7, 5)
        assert img.channels == 3
        assert img.mode == "RGB"

    def test_greyscale_array_gains_channel_axis(self) -> None:
        img = RasterImage(np.zeros((4, 6), dtype=np.uint8))
        assert img.pixels.shape == (4, 6, 1)
        assert img.mode == "L"

    def test_rejects_two_channels(self) -> None:
        with pytest.raises(ValueError, match="expected pixels shaped"):
            RasterImage(np.zeros((4, 6, 2), dtype=np.uint8))

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            RasterImage(np.zeros((0, 6, 3), dtype=np.uint8))

    def test_rejects_float_pixels(self) -> None:
        with pytest.raises(ValueError, match="8-bit"):
            RasterImage(np.zeros((4, 6, 3), dtype=np.float32))

    def test_wide_integers_are_clipped(self) -> None:
        img = RasterImage(np.array([[-5, 300]], dtype=np.int32))
        assert img.pixels[:, :, 0].tolist() == [[0, 255]]

    def test_coerce_rejects_other_types(self) -> None:
        with pytest.raises(TypeError, match="expected RasterImage"):
            RasterImage.coerce([[1, 2, 3]])


class TestImmutability:
    def test_pixels_read_only(self) -> None:
        img = RasterImage(textured())
        with pytest.raises(ValueError):
            img.pixels[0, 0, 0] = 1

    def test_source_array_not_aliased(self) -> None:
        src = textured()
        img = RasterImage(src)
        src[:] = 0
        assert img.pixels.any()

    def test_equality_and_hash(self) -> None:
        a = RasterImage(textured(seed=1))
        b = RasterImage(textured(seed=1))
        c = RasterImage(textured(seed=2))
        assert a == b
        assert hash(a) == hash(b)
        assert a != c


class TestPil:
    @pytest.mark.parametrize(
        "mode, channels",
        [("L", 1), ("RGB", 3), ("RGBA", 4), ("LA", 4), ("CMYK", 3), ("1", 1)],
    )
    def test_modes_normalized(self, mode: str, channels: int) -> None:
        img = RasterImage.from_pil(Image.new(mode, (3, 2)))
        assert img.channels == channels
        assert img.size == (3, 2)

    def test_palette_with_transparency_becomes_rgba(self) -> None:
        pal = Image.new("P", (3, 2))
        pal.info["transparency"] = 0
        assert RasterImage.from_pil(pal).mode == "RGBA"

    def test_sixteen_bit_greyscale_keeps_high_byte(self) -> None:
        arr = np.full((2, 3), 0x8000, dtype=np.uint16)
        img = RasterImage.from_pil(Image.fromarray(arr))
        assert img.mode == "L"
        assert int(img.pixels[0, 0, 0]) == 0x80

    def test_sixteen_bit_mapping_independent_of_content(self) -> None:
        """Nearly equal 16-bit images stay nearly equal after conversion."""
        dim = np.full((2, 3), 0x00FF, dtype=np.uint16)
        bright = np.full((2, 3), 0x0100, dtype=np.uint16)
        assert int(RasterImage.from_pil(Image.fromarray(dim)).pixels.max()) == 0
        assert int(RasterImage.from_pil(Image.fromarray(bright)).pixels.max()) == 1

    def test_pil_roundtrip(self) -> None:
        src = RasterImage(textured(channels=4))
        assert RasterImage.from_pil(src.to_pil()) == src

    def test_png_roundtrip(self, tmp_path) -> None:
        src = RasterImage(textured())
        path = tmp_path / "nested" / "img.png"
        src.save_png(path)
        assert RasterImage.from_file(path) == src

    def test_crop_top_left(self) -> None:
        src = RasterImage(textured(size=(10, 8)))
        cropped = src.crop(4, 3)
        assert cropped.size == (4, 3)
        assert np.array_equal(cropped.pixels, src.pixels[:3, :4])
