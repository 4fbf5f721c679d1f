"""
Row-major RGBA raster buffer shared by every studio stage.

Pixels live in a (height, width, 4) uint8 numpy array, so the flat byte
layout is row-major with stride = width * 4. Stages never mutate a buffer
they received; they copy and return a new one.
"""

import io
import math
from dataclasses import dataclass, field
from typing import Tuple, Union

import numpy as np
from PIL import Image, ImageOps

CHANNELS = 4


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (pixel math expects this, not banker's rounding)."""
    return int(math.floor(value + 0.5))


def round_half_up_array(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


@dataclass
class PixelBuffer:
    """An RGBA raster owned by whichever stage currently holds it."""

    pixels: np.ndarray
    # False when the source image carried no alpha channel (alpha was synthesized as 255)
    has_alpha: bool = True
    info: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != CHANNELS:
            raise ValueError(f"PixelBuffer expects (h, w, 4) pixels, got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def alpha(self) -> np.ndarray:
        """Read-only view of the alpha plane."""
        view = self.pixels[:, :, 3]
        view.flags.writeable = False
        return view

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy(), has_alpha=self.has_alpha, info=dict(self.info))

    def with_pixels(self, pixels: np.ndarray) -> "PixelBuffer":
        return PixelBuffer(pixels, has_alpha=self.has_alpha, info=dict(self.info))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def blank(cls, width: int, height: int, rgba: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> "PixelBuffer":
        pixels = np.empty((height, width, CHANNELS), dtype=np.uint8)
        pixels[:, :] = rgba
        return cls(pixels)

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        has_alpha = image.mode in ("RGBA", "LA", "PA") or (
            image.mode == "P" and "transparency" in image.info
        )
        rgba = image.convert("RGBA")
        info = {k: v for k, v in image.info.items() if k in ("comment", "dpi")}
        return cls(np.array(rgba, dtype=np.uint8), has_alpha=has_alpha, info=info)

    @classmethod
    def decode(cls, data: Union[bytes, bytearray]) -> "PixelBuffer":
        """Decode an encoded image (JPEG/PNG/WebP...), honouring EXIF orientation."""
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            comment = image.info.get("comment")
            oriented = ImageOps.exif_transpose(image)
            buffer = cls.from_image(oriented)
        if comment is not None:
            buffer.info["comment"] = comment
        return buffer

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def to_png(self) -> bytes:
        out = io.BytesIO()
        self.to_image().save(out, format="PNG")
        return out.getvalue()

    def to_jpeg(self, quality: int = 95) -> bytes:
        out = io.BytesIO()
        self.to_image().convert("RGB").save(out, format="JPEG", quality=quality)
        return out.getvalue()
