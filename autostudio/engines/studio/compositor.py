"""
Compositor

Layers, in order: background (template or generated fallback), the scaled
and positioned cutout, and an optional logo; then cover-fits the canvas to
the export resolution and encodes a 4:4:4 JPEG.

Missing or broken background/logo assets are never fatal.
"""

import io
from typing import Optional, Tuple

from PIL import Image, ImageOps

from autostudio.core.logging import get_logger
from autostudio.engines.studio.buffer import PixelBuffer, round_half_up
from autostudio.engines.studio.overlay import OverlayContext, OverlayHook
from autostudio.engines.studio.schemas import Bounds, CompositePlan, PhotoMode

logger = get_logger(__name__)

RESAMPLE = Image.Resampling.LANCZOS

SHOWROOM_WALL = (224, 224, 224)
SHOWROOM_FLOOR = (160, 160, 160)
SHOWROOM_FLOOR_START_PCT = 0.55
INTERIOR_FILL = (15, 23, 42)

DEFAULT_LOGO_WIDTH_PCT = 0.10
DEFAULT_LOGO_PADDING_PCT = 0.012

EXPORT_SIZE = (1920, 1080)
EXPORT_QUALITY = 92


# =============================================================================
# Background
# =============================================================================

def fallback_background(size: Tuple[int, int], mode: PhotoMode = PhotoMode.EXTERIOR) -> Image.Image:
    """Flat wall-and-floor showroom, or a plain dark fill for interiors."""
    if mode == PhotoMode.INTERIOR:
        return Image.new("RGB", size, INTERIOR_FILL)

    width, height = size
    canvas = Image.new("RGB", size, SHOWROOM_WALL)
    floor_top = round_half_up(height * SHOWROOM_FLOOR_START_PCT)
    canvas.paste(SHOWROOM_FLOOR, (0, floor_top, width, height))
    return canvas


def render_background(
    size: Tuple[int, int],
    mode: PhotoMode,
    template: Optional[bytes] = None,
) -> Image.Image:
    """Showroom template cover-fitted to the canvas; fallback when absent or unreadable."""
    if mode == PhotoMode.INTERIOR or template is None:
        return fallback_background(size, mode)

    try:
        with Image.open(io.BytesIO(template)) as image:
            return ImageOps.fit(image.convert("RGB"), size, method=RESAMPLE, centering=(0.5, 0.5))
    except Exception as e:
        logger.warning("background_template_unreadable", error=str(e), error_type=type(e).__name__)
        return fallback_background(size, mode)


# =============================================================================
# Layers
# =============================================================================

def scale_cutout(cutout: PixelBuffer, plan: CompositePlan) -> Image.Image:
    image = cutout.to_image()
    if plan.scale == 1 and image.size == plan.scaled_size:
        return image
    return image.resize(plan.scaled_size, RESAMPLE)


def place_subject(canvas: Image.Image, cutout: PixelBuffer, plan: CompositePlan) -> Image.Image:
    subject = scale_cutout(cutout, plan)
    canvas.paste(subject, (plan.left, plan.top), subject)
    return canvas


def place_logo(
    canvas: Image.Image,
    logo: Optional[bytes],
    width_pct: float = DEFAULT_LOGO_WIDTH_PCT,
    padding_pct: float = DEFAULT_LOGO_PADDING_PCT,
) -> Image.Image:
    """Top-right logo scaled to `width_pct` of the canvas. Failures only log."""
    if not logo:
        return canvas

    try:
        with Image.open(io.BytesIO(logo)) as source:
            mark = source.convert("RGBA")
        target_width = max(1, round_half_up(canvas.width * width_pct))
        padding = round_half_up(canvas.width * padding_pct)
        target_height = max(1, round_half_up(mark.height * target_width / max(1, mark.width)))
        mark = mark.resize((target_width, target_height), RESAMPLE)
        canvas.paste(mark, (canvas.width - target_width - padding, padding), mark)
    except Exception as e:
        logger.warning("logo_skipped", error=str(e), error_type=type(e).__name__)
    return canvas


# =============================================================================
# Export
# =============================================================================

def export_jpeg(
    canvas: Image.Image,
    size: Tuple[int, int] = EXPORT_SIZE,
    quality: int = EXPORT_QUALITY,
    marker: Optional[str] = None,
) -> bytes:
    """Cover-fit to the export size and encode without chroma subsampling."""
    final = canvas if canvas.size == size else ImageOps.fit(canvas, size, method=RESAMPLE, centering=(0.5, 0.5))
    params = {"format": "JPEG", "quality": quality, "subsampling": 0}
    if marker:
        params["comment"] = marker
    out = io.BytesIO()
    final.convert("RGB").save(out, **params)
    return out.getvalue()


def compose(
    cutout: PixelBuffer,
    plan: CompositePlan,
    soft: Bounds,
    solid: Bounds,
    background: Optional[bytes] = None,
    logo: Optional[bytes] = None,
    logo_width_pct: float = DEFAULT_LOGO_WIDTH_PCT,
    logo_padding_pct: float = DEFAULT_LOGO_PADDING_PCT,
    export_size: Tuple[int, int] = EXPORT_SIZE,
    quality: int = EXPORT_QUALITY,
    marker: Optional[str] = None,
    overlay: Optional[OverlayHook] = None,
) -> bytes:
    """
    Render the final photograph.

    Args:
        cutout: Padded, conditioned cutout
        plan: Placement from the solver
        soft: Soft bounds in padded space (overlay only)
        solid: Solid bounds in padded space (overlay only)
        background: Encoded template image, or None for the generated fallback
        logo: Encoded logo image, or None
        overlay: Optional decorator applied to the canvas before export

    Returns:
        Encoded JPEG at export_size
    """
    canvas = render_background(plan.canvas_size, plan.mode, background)
    canvas = place_subject(canvas, cutout, plan)
    canvas = place_logo(canvas, logo, logo_width_pct, logo_padding_pct)

    if overlay is not None:
        canvas = overlay(canvas, OverlayContext(plan=plan, soft=soft, solid=solid))

    return export_jpeg(canvas, export_size, quality, marker)
