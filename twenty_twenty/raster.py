"""Immutable 8-bit raster image value type.

``RasterImage`` wraps a read-only ``(H, W, C)`` uint8 array with C in
{1, 3, 4} (L, RGB, RGBA). Everything that produces pixels (the H.264
decoder, the PNG loader, callers passing PIL images or arrays) goes through
one of the constructors here, so the comparison code only ever sees these
three layouts.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from twenty_twenty.utils import fs

_MODES = {1: "L", 3: "RGB", 4: "RGBA"}


def _normalize_pil(img: Image.Image) -> Image.Image:
    """Convert any PIL mode to L, RGB or RGBA."""
    if img.mode in ("L", "RGB", "RGBA"):
        return img
    if img.mode in ("I;16", "I;16B", "I;16L", "I"):
        # 16-bit greyscale (PIL loads 16-bit PNGs as I or I;16): keep the high byte
        arr = np.clip(np.asarray(img).astype(np.int64), 0, 65535) >> 8
        return Image.fromarray(arr.astype(np.uint8))
    has_alpha = "A" in img.getbands() or "transparency" in img.info
    if img.mode in ("1", "F"):
        return img.convert("L")
    if img.mode == "LA":
        return img.convert("RGBA")
    return img.convert("RGBA" if has_alpha else "RGB")


@dataclass(frozen=True)
class RasterImage:
    """A width x height grid of 8-bit pixels with 1, 3 or 4 channels."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = np.asarray(self.pixels)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        if arr.ndim != 3 or arr.shape[2] not in _MODES:
            raise ValueError(
                f"expected pixels shaped (H, W), (H, W, 1), (H, W, 3) or (H, W, 4), got {arr.shape}"
            )
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError(f"image must not be empty, got {arr.shape[1]}x{arr.shape[0]}")
        if arr.dtype != np.uint8:
            if not np.issubdtype(arr.dtype, np.integer):
                raise ValueError(f"expected 8-bit integer pixels, got dtype {arr.dtype}")
            arr = np.clip(arr, 0, 255).astype(np.uint8)
        # Private read-only copy: callers can't mutate us and we can't mutate them
        arr = np.array(arr, dtype=np.uint8, copy=True)
        arr.flags.writeable = False
        object.__setattr__(self, "pixels", arr)

    @classmethod
    def from_pil(cls, img: Image.Image) -> RasterImage:
        return cls(np.asarray(_normalize_pil(img)))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> RasterImage:
        """Load a PNG (or any PIL-readable image) from disk."""
        return cls.from_pil(fs.load_image(path))

    @classmethod
    def coerce(cls, value: Union[RasterImage, Image.Image, np.ndarray]) -> RasterImage:
        """Accept a RasterImage, a PIL image or an array."""
        if isinstance(value, RasterImage):
            return value
        if isinstance(value, Image.Image):
            return cls.from_pil(value)
        if isinstance(value, np.ndarray):
            return cls(value)
        raise TypeError(
            f"expected RasterImage, PIL.Image.Image or numpy.ndarray, got {type(value).__name__}"
        )

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def mode(self) -> str:
        return _MODES[self.channels]

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def to_pil(self) -> Image.Image:
        arr = self.pixels[:, :, 0] if self.channels == 1 else self.pixels
        return Image.fromarray(np.ascontiguousarray(arr))

    def crop(self, width: int, height: int) -> RasterImage:
        """Top-left ``width x height`` region."""
        return RasterImage(self.pixels[:height, :width])

    def save_png(self, path: Union[str, Path]) -> None:
        """Write as PNG atomically; see fs.atomic_save_png()."""
        fs.atomic_save_png(self.pixels, path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterImage):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and bool(np.array_equal(self.pixels, other.pixels))

    def __hash__(self) -> int:
        return hash((self.pixels.shape, self.pixels.tobytes()))

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height}, {self.mode})"
