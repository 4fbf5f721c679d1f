"""
Alpha Bounds Analyzer

Scans a cutout's alpha plane and measures two bounding boxes:
- soft  (alpha > 20):  subject plus rendered shadow
- solid (alpha > 200): subject body only
together with coverage ratios used by the photo-mode classifier.

Decode failures never raise: a full-frame, invalid-bounds analysis is returned
instead so downstream stages always receive well-formed data.
"""

import io
from typing import Tuple, Union

import numpy as np
from PIL import Image

from autostudio.core.logging import get_logger
from autostudio.engines.studio.buffer import PixelBuffer, round_half_up
from autostudio.engines.studio.schemas import Bounds, SubjectAnalysis

logger = get_logger(__name__)

SOFT_ALPHA_THRESHOLD = 20
SOLID_ALPHA_THRESHOLD = 200
OPAQUE_ALPHA_THRESHOLD = 250
BOTTOM_BAND_PCT = 0.02

# Used when even the image header cannot be read
FALLBACK_WIDTH = 2000
FALLBACK_HEIGHT = 1500


def _mask_bounds(mask: np.ndarray) -> Bounds:
    height, width = mask.shape
    rows = np.flatnonzero(mask.any(axis=1))
    if rows.size == 0:
        return Bounds.full_frame(width, height)
    cols = np.flatnonzero(mask.any(axis=0))
    return Bounds(
        min_x=int(cols[0]),
        max_x=int(cols[-1]),
        min_y=int(rows[0]),
        max_y=int(rows[-1]),
        valid=True,
    )


def measure_alpha(buffer: PixelBuffer) -> SubjectAnalysis:
    """Measure soft/solid bounds and coverage statistics of a decoded buffer."""
    width, height = buffer.width, buffer.height
    total_pixels = width * height
    if total_pixels == 0:
        return fallback_analysis(width, height, has_alpha=buffer.has_alpha)

    alpha = buffer.pixels[:, :, 3]
    soft_mask = alpha > SOFT_ALPHA_THRESHOLD
    solid_mask = alpha > SOLID_ALPHA_THRESHOLD

    soft = _mask_bounds(soft_mask)
    solid = _mask_bounds(solid_mask)

    soft_pixels = int(np.count_nonzero(soft_mask))
    solid_pixels = int(np.count_nonzero(solid_mask))
    opaque_pixels = int(np.count_nonzero(alpha > OPAQUE_ALPHA_THRESHOLD))

    band_start = max(0, height - round_half_up(height * BOTTOM_BAND_PCT))
    touched_columns = int(np.count_nonzero(soft_mask[band_start:].any(axis=0)))

    return SubjectAnalysis(
        buffer_width=width,
        buffer_height=height,
        has_alpha=buffer.has_alpha,
        soft=soft,
        solid=solid,
        soft_coverage=soft_pixels / total_pixels,
        solid_coverage=solid_pixels / total_pixels,
        soft_width_pct=min(1.0, soft.width / width),
        soft_height_pct=min(1.0, soft.height / height),
        bottom_touch_ratio=touched_columns / width,
        opaque_ratio=opaque_pixels / total_pixels,
    )


def fallback_analysis(width: int, height: int, has_alpha: bool = False) -> SubjectAnalysis:
    """Conservative result: both boxes invalid-but-full-frame, every ratio 1."""
    return SubjectAnalysis(
        buffer_width=width,
        buffer_height=height,
        has_alpha=has_alpha,
        soft=Bounds.full_frame(width, height),
        solid=Bounds.full_frame(width, height),
        soft_coverage=1.0,
        solid_coverage=1.0,
        soft_width_pct=1.0,
        soft_height_pct=1.0,
        bottom_touch_ratio=1.0,
        opaque_ratio=1.0,
    )


def _header_size(data: bytes) -> Tuple[int, int]:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except Exception:
        return FALLBACK_WIDTH, FALLBACK_HEIGHT


def analyze_subject_bounds(image: Union[bytes, PixelBuffer]) -> SubjectAnalysis:
    """
    Analyze a cutout, either already decoded or as encoded bytes.

    Returns:
        SubjectAnalysis; the conservative fallback when decoding fails
    """
    if isinstance(image, PixelBuffer):
        return measure_alpha(image)

    try:
        buffer = PixelBuffer.decode(image)
    except Exception as e:
        width, height = _header_size(image)
        logger.warning(
            "analysis_decode_failed",
            error=str(e),
            error_type=type(e).__name__,
            fallback_size=(width, height)
        )
        return fallback_analysis(width, height, has_alpha=False)

    return measure_alpha(buffer)
