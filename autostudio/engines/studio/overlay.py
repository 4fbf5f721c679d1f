"""
Development-only measurement overlay.

A DebugOverlay is an injectable decorator over the composited canvas: it
draws the soft box, the solid box and the floor line. The pipeline only
builds one when Settings.debug_overlay_enabled is true, which is never the
case in production.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from PIL import Image, ImageDraw

from autostudio.engines.studio.schemas import Bounds, CompositePlan

SOFT_BOX_COLOR = (56, 189, 248)
SOLID_BOX_COLOR = (245, 158, 11)
FLOOR_LINE_COLOR = (34, 197, 94)
LINE_WIDTH = 2
DASH = (6, 4)


@dataclass(frozen=True)
class OverlayContext:
    """What the compositor knew when it placed the subject (bounds in padded space)."""

    plan: CompositePlan
    soft: Bounds
    solid: Bounds

    def to_canvas(self, bounds: Bounds) -> Tuple[float, float, float, float]:
        scale = self.plan.scale
        x0 = self.plan.left + bounds.min_x * scale
        y0 = self.plan.top + bounds.min_y * scale
        return x0, y0, x0 + bounds.width * scale, y0 + bounds.height * scale


OverlayHook = Callable[[Image.Image, OverlayContext], Image.Image]


class DebugOverlay:
    """Draws measurement rectangles and the floor line onto a copy of the canvas."""

    def __init__(self, show_solid: bool = True, show_floor: bool = True):
        self.show_solid = show_solid
        self.show_floor = show_floor

    def __call__(self, canvas: Image.Image, context: OverlayContext) -> Image.Image:
        annotated = canvas.copy()
        draw = ImageDraw.Draw(annotated)

        floor_y = context.plan.floor_y
        if self.show_floor and floor_y is not None:
            self._dashed_line(draw, floor_y, annotated.width)

        draw.rectangle(context.to_canvas(context.soft), outline=SOFT_BOX_COLOR, width=LINE_WIDTH)
        # Interior shots are framed on the soft box only
        if self.show_solid and floor_y is not None:
            draw.rectangle(context.to_canvas(context.solid), outline=SOLID_BOX_COLOR, width=LINE_WIDTH)
        return annotated

    @staticmethod
    def _dashed_line(draw: ImageDraw.ImageDraw, y: int, width: int):
        dash, gap = DASH
        x = 0
        while x < width:
            draw.line([(x, y), (min(x + dash, width), y)], fill=FLOOR_LINE_COLOR, width=LINE_WIDTH)
            x += dash + gap


def build_overlay(enabled: bool) -> Optional[OverlayHook]:
    """The overlay to inject into the compositor, or None."""
    return DebugOverlay() if enabled else None
