#!/usr/bin/env python3
"""
Background Template Generator

Renders the placeholder showroom backgrounds (1920x1080 JPEG) into
BACKGROUND_TEMPLATES_DIR:
- showroom-grey:    flat wall over a darker floor
- studio-white:     soft white sweep with a floor glow
- studio-gray:      dark studio with a spotlight
- branded-gradient: diagonal navy gradient with colour glows

Replace these with real photographs for production.

Usage:
    python scripts/generate_templates.py [--output-dir DIR]
"""

import sys
import argparse
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import numpy as np
from PIL import Image

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from autostudio.core.config import settings
from autostudio.core.logging import get_logger, setup_logging

logger = get_logger(__name__)

WIDTH = 1920
HEIGHT = 1080
QUALITY = 95

Stop = Tuple[float, str]


def hex_to_rgb(value: str) -> np.ndarray:
    value = value.lstrip("#")
    return np.array([int(value[i:i + 2], 16) for i in (0, 2, 4)], dtype=np.float64)


def interpolate(stops: List[Stop], t: np.ndarray) -> np.ndarray:
    """Colour at each position t in [0, 1] along piecewise-linear stops."""
    offsets = np.array([offset for offset, _ in stops])
    colors = np.stack([hex_to_rgb(color) for _, color in stops])
    t = np.clip(t, 0.0, 1.0)
    channels = [np.interp(t, offsets, colors[:, c]) for c in range(3)]
    return np.stack(channels, axis=-1)


def _grid(width: int, height: int) -> Tuple[np.ndarray, np.ndarray]:
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    return xs / max(1, width - 1), ys / max(1, height - 1)


def vertical_gradient(stops: List[Stop], width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    _, ys = _grid(width, height)
    return interpolate(stops, ys)


def diagonal_gradient(stops: List[Stop], width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    xs, ys = _grid(width, height)
    return interpolate(stops, (xs + ys) / 2)


def radial_falloff(cx: float, cy: float, radius: float, width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    """0 at the centre, 1 at `radius` (fractions of the diagonal-normalised frame)."""
    xs, ys = _grid(width, height)
    distance = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / np.sqrt(2)
    return np.clip(distance / radius, 0.0, 1.0)


def blend(base: np.ndarray, color: np.ndarray, weight: np.ndarray) -> np.ndarray:
    weight = weight[..., np.newaxis]
    return base * (1 - weight) + color * weight


def floor_ellipse(rx: float, ry: float, width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    """Mask of an ellipse centred on the bottom edge (radii in pixels)."""
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    inside = ((xs - width / 2) / rx) ** 2 + ((ys - height) / ry) ** 2 <= 1.0
    return inside.astype(np.float64)


# =============================================================================
# Templates
# =============================================================================

def render_showroom_grey(width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    canvas = np.empty((height, width, 3), dtype=np.float64)
    canvas[:] = hex_to_rgb("#e0e0e0")
    floor_top = int(np.floor(height * 0.55 + 0.5))
    canvas[floor_top:] = vertical_gradient([(0.0, "#a8a8a8"), (1.0, "#989898")], width, height - floor_top)
    return canvas


def render_studio_white(width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    canvas = vertical_gradient([(0.0, "#ffffff"), (0.4, "#fafafa"), (1.0, "#e8e8e8")], width, height)
    floor = vertical_gradient([(0.0, "#e0e0e0"), (1.0, "#d0d0d0")], width, height)
    mask = floor_ellipse(width * 0.6, height * 0.15, width, height) * 0.5
    return canvas * (1 - mask[..., np.newaxis]) + floor * mask[..., np.newaxis]


def render_studio_gray(width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    spotlight = radial_falloff(0.5, 0.3, 0.7, width, height)
    canvas = interpolate([(0.0, "#5a5a5a"), (0.5, "#3a3a3a"), (1.0, "#1a1a1a")], spotlight)
    floor = vertical_gradient([(0.0, "#2a2a2a"), (1.0, "#1a1a1a")], width, height)
    mask = floor_ellipse(width * 0.7, height * 0.2, width, height) * 0.7
    return canvas * (1 - mask[..., np.newaxis]) + floor * mask[..., np.newaxis]


def render_branded_gradient(width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    canvas = diagonal_gradient(
        [(0.0, "#0f172a"), (0.3, "#1e3a5f"), (0.7, "#0c4a6e"), (1.0, "#0f172a")], width, height
    )
    canvas = blend(canvas, hex_to_rgb("#06b6d4"), (1 - radial_falloff(0.2, 0.3, 0.4, width, height)) * 0.15)
    canvas = blend(canvas, hex_to_rgb("#3b82f6"), (1 - radial_falloff(0.8, 0.7, 0.5, width, height)) * 0.10)
    floor = vertical_gradient([(0.0, "#0a2540"), (1.0, "#071a2e")], width, height)
    mask = floor_ellipse(width * 0.6, height * 0.18, width, height) * 0.6
    return canvas * (1 - mask[..., np.newaxis]) + floor * mask[..., np.newaxis]


TEMPLATES: Dict[str, Callable[..., np.ndarray]] = {
    "showroom-grey": render_showroom_grey,
    "studio-white": render_studio_white,
    "studio-gray": render_studio_gray,
    "branded-gradient": render_branded_gradient,
}


def to_image(canvas: np.ndarray) -> Image.Image:
    return Image.fromarray(np.clip(np.floor(canvas + 0.5), 0, 255).astype(np.uint8))


def generate_templates(output_dir: Path, width: int = WIDTH, height: int = HEIGHT) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, render in TEMPLATES.items():
        path = output_dir / f"{name}.jpg"
        to_image(render(width, height)).save(path, format="JPEG", quality=QUALITY)
        logger.info("template_generated", template=name, path=str(path))
        written.append(path)
    return written


def main():
    parser = argparse.ArgumentParser(description="Render placeholder showroom background templates")
    parser.add_argument(
        "--output-dir",
        default=settings.BACKGROUND_TEMPLATES_DIR,
        help="Directory to write <template>.jpg files into"
    )
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL, json_format=False)
    written = generate_templates(Path(args.output_dir))
    logger.info("templates_generated", count=len(written))


if __name__ == "__main__":
    main()
