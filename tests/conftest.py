import io

import numpy as np
import pytest
from PIL import Image

from autostudio.engines.studio.buffer import PixelBuffer

GREY = (128, 128, 128)
CAR_RED = (200, 30, 30)


def build_cutout(width, height, body=None, shadow=None, shadow_alpha=100, color=CAR_RED):
    """
    RGBA buffer with an opaque body rectangle and an optional shadow band.

    Rectangles are (x0, y0, x1, y1), inclusive.
    """
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    if shadow is not None:
        x0, y0, x1, y1 = shadow
        pixels[y0:y1 + 1, x0:x1 + 1] = (20, 20, 20, shadow_alpha)
    if body is not None:
        x0, y0, x1, y1 = body
        pixels[y0:y1 + 1, x0:x1 + 1] = color + (255,)
    return PixelBuffer(pixels)


def build_photo(width, height, car=None, background=GREY, color=CAR_RED):
    """Opaque RGB photo: a coloured car rectangle on a flat backdrop."""
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, :] = background
    if car is not None:
        x0, y0, x1, y1 = car
        pixels[y0:y1 + 1, x0:x1 + 1] = color
    return Image.fromarray(pixels)


def encode(image, fmt="JPEG", **params):
    out = io.BytesIO()
    image.save(out, format=fmt, **params)
    return out.getvalue()


@pytest.fixture
def make_cutout():
    return build_cutout


@pytest.fixture
def make_photo_bytes():
    def factory(width, height, car=None, fmt="JPEG", **params):
        if fmt == "JPEG":
            params.setdefault("quality", 95)
        return encode(build_photo(width, height, car), fmt, **params)
    return factory


@pytest.fixture
def encode_image():
    return encode


@pytest.fixture
def opaque_remover():
    """Remover stand-in that returns the input as a fully opaque RGBA PNG."""
    def remover(image_bytes):
        with Image.open(io.BytesIO(image_bytes)) as image:
            return encode(image.convert("RGBA"), "PNG")
    return remover
