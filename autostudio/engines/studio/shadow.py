"""
Shadow Conditioner

Prepares the removal-service input and cleans up its rendered ground shadow:

1. pad_for_removal      - grey margin so the service has room to render a shadow
2. crop_removal_output  - crop the margin away, keeping a slice for shadow bleed
3. adjust_shadow_intensity - dampen semi-transparent (shadow) alpha
4. soften_shadow_edges  - fade hard cut lines: extend, blur, feather
5. pad_for_placement    - transparent margin that holds the shadow on the canvas
6. trim_transparent_margins - drop empty rows and columns of a re-fed cutout

All operations copy; the input buffer is never modified.
"""

from typing import Tuple

import numpy as np

from autostudio.engines.studio.buffer import PixelBuffer, round_half_up, round_half_up_array
from autostudio.engines.studio.schemas import Padding

# Removal pre-pad (fraction of source height / width)
REMOVAL_PAD_TOP_PCT = 0.02
REMOVAL_PAD_BOTTOM_PCT = 0.08
REMOVAL_PAD_SIDE_PCT = 0.02
REMOVAL_PAD_FILL = (128, 128, 128, 255)

# Fraction of each pre-pad edge kept after the service returns
KEEP_TOP_PCT = 0.10
KEEP_BOTTOM_PCT = 0.50
KEEP_SIDE_PCT = 0.10

# Alpha at or above this is body and is never dampened
INTENSITY_BODY_ALPHA = 240

# Edge softening
SHADOW_EDGE_MIN_ALPHA = 5
SHADOW_ALPHA_MAX = 200
BODY_ALPHA_MIN = 230
FADE_DISTANCE = 20
FADE_STRENGTH = 0.7
FADE_MIN_BASE_ALPHA = 10
FADE_MIN_ALPHA = 2
BLUR_RADIUS = 8
FEATHER_PX = 8

# Placement margins
PLACEMENT_PAD_TOP_PCT = 0.03
PLACEMENT_PAD_BOTTOM_PCT = 0.10
PLACEMENT_PAD_SIDE_PCT = 0.03


def _extend(buffer: PixelBuffer, padding: Padding, fill) -> PixelBuffer:
    height = buffer.height + padding.top + padding.bottom
    width = buffer.width + padding.left + padding.right
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :] = fill
    pixels[
        padding.top:padding.top + buffer.height,
        padding.left:padding.left + buffer.width,
    ] = buffer.pixels
    return buffer.with_pixels(pixels)


# =============================================================================
# Around the removal call
# =============================================================================

def pad_for_removal(image: PixelBuffer) -> Tuple[PixelBuffer, Padding]:
    """Extend the source photo with neutral grey so the service can render a full shadow."""
    padding = Padding(
        top=round_half_up(image.height * REMOVAL_PAD_TOP_PCT),
        bottom=round_half_up(image.height * REMOVAL_PAD_BOTTOM_PCT),
        left=round_half_up(image.width * REMOVAL_PAD_SIDE_PCT),
        right=round_half_up(image.width * REMOVAL_PAD_SIDE_PCT),
    )
    padded = _extend(image, padding, REMOVAL_PAD_FILL)
    padded.has_alpha = False
    return padded, padding


def crop_removal_output(cutout: PixelBuffer, padding: Padding) -> PixelBuffer:
    """Crop the pre-pad back out, keeping a residual slice of each edge for shadow bleed."""
    keep_top = round_half_up(padding.top * KEEP_TOP_PCT)
    keep_bottom = round_half_up(padding.bottom * KEEP_BOTTOM_PCT)
    keep_left = round_half_up(padding.left * KEEP_SIDE_PCT)
    keep_right = round_half_up(padding.right * KEEP_SIDE_PCT)

    crop_left = max(0, padding.left - keep_left)
    crop_top = max(0, padding.top - keep_top)
    crop_right = max(crop_left + 1, cutout.width - (padding.right - keep_right))
    crop_bottom = max(crop_top + 1, cutout.height - (padding.bottom - keep_bottom))

    crop_right = min(crop_right, cutout.width)
    crop_bottom = min(crop_bottom, cutout.height)

    return cutout.with_pixels(cutout.pixels[crop_top:crop_bottom, crop_left:crop_right].copy())


# =============================================================================
# Intensity
# =============================================================================

def adjust_shadow_intensity(buffer: PixelBuffer, intensity: int) -> PixelBuffer:
    """
    Scale the alpha of shadow pixels (0 < alpha < 240) by intensity / 100.

    100 (or more) is a no-op; body pixels are never touched.
    """
    if intensity >= 100:
        return buffer.copy()

    factor = max(0, intensity) / 100
    pixels = buffer.pixels.copy()
    alpha = pixels[:, :, 3]
    shadow = (alpha > 0) & (alpha < INTENSITY_BODY_ALPHA)
    alpha[shadow] = round_half_up_array(alpha[shadow].astype(np.float64) * factor).astype(np.uint8)
    return buffer.with_pixels(pixels)


# =============================================================================
# Edge softening
# =============================================================================

def find_shadow_edges(alpha: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per column, scan bottom-up for the first shadow pixel (5 < alpha < 200),
    stopping at body pixels (alpha >= 230).

    Returns:
        (edge_rows, edge_alpha); edge_rows is -1 for columns without a shadow edge
    """
    height, width = alpha.shape
    flipped = alpha[::-1]
    shadow = (flipped > SHADOW_EDGE_MIN_ALPHA) & (flipped < SHADOW_ALPHA_MAX)
    body = flipped >= BODY_ALPHA_MIN
    stop = shadow | body

    columns = np.arange(width)
    first = stop.argmax(axis=0)
    is_edge = stop.any(axis=0) & shadow[first, columns]

    edge_rows = np.where(is_edge, height - 1 - first, -1)
    edge_alpha = np.where(is_edge, alpha[np.clip(edge_rows, 0, height - 1), columns], 0)
    return edge_rows.astype(np.int64), edge_alpha.astype(np.int64)


def extend_shadow_fade(pixels: np.ndarray, edge_rows: np.ndarray, edge_alpha: np.ndarray) -> np.ndarray:
    """
    Continue each column's shadow edge downward with an ease-out fade.

    Only writes where the existing alpha is weaker than the fade value.
    """
    result = pixels.copy()
    height, width = pixels.shape[:2]
    columns = np.arange(width)

    active = (edge_rows >= 0) & (edge_rows < height - 2) & (edge_alpha >= FADE_MIN_BASE_ALPHA)
    if not active.any():
        return result

    safe_rows = np.clip(edge_rows, 0, height - 1)
    edge_rgb = pixels[safe_rows, columns, :3]

    for dy in range(1, FADE_DISTANCE + 1):
        progress = dy / FADE_DISTANCE
        fade = round_half_up_array(edge_alpha * (1 - progress * progress) * FADE_STRENGTH).astype(np.int64)
        rows = edge_rows + dy
        write = active & (rows < height) & (fade >= FADE_MIN_ALPHA)
        if not write.any():
            break

        cols = columns[write]
        target_rows = rows[write]
        existing = result[target_rows, cols, 3].astype(np.int64)
        stronger = fade[write] > existing

        cols = cols[stronger]
        target_rows = target_rows[stronger]
        result[target_rows, cols, :3] = edge_rgb[write][stronger]
        result[target_rows, cols, 3] = fade[write][stronger]

    return result


def blur_shadow_band(pixels: np.ndarray, radius: int = BLUR_RADIUS) -> np.ndarray:
    """
    Horizontal box blur restricted to shadow-range pixels (0 < alpha < 200).

    Body and fully transparent pixels are neither changed nor sampled.
    """
    height, width = pixels.shape[:2]
    result = pixels.copy()
    if width < 2 * radius + 1:
        return result

    alpha = pixels[:, :, 3]
    in_band = (alpha > 0) & (alpha < SHADOW_ALPHA_MAX)
    weights = in_band.astype(np.float64)

    def window_sum(values: np.ndarray) -> np.ndarray:
        cumulative = np.zeros((height, width + 1), dtype=np.float64)
        np.cumsum(values, axis=1, out=cumulative[:, 1:])
        # Sums for centres radius .. width - radius - 1
        return cumulative[:, 2 * radius + 1:] - cumulative[:, :width - 2 * radius]

    counts = window_sum(weights)
    inner = np.s_[:, radius:width - radius]
    apply = in_band[inner] & (counts > 0)
    if not apply.any():
        return result

    target = result[inner]
    for channel in range(4):
        sums = window_sum(pixels[:, :, channel].astype(np.float64) * weights)
        averaged = round_half_up_array(sums / np.maximum(counts, 1)).astype(np.uint8)
        plane = target[:, :, channel]
        plane[apply] = averaged[apply]
    return result


def feather_border(pixels: np.ndarray, feather_px: int = FEATHER_PX) -> np.ndarray:
    """Fade alpha linearly to 0 within `feather_px` of any image edge."""
    height, width = pixels.shape[:2]
    result = pixels.copy()
    xs = np.arange(width)
    ys = np.arange(height)
    dist_x = np.minimum(xs, width - 1 - xs)[np.newaxis, :]
    dist_y = np.minimum(ys, height - 1 - ys)[:, np.newaxis]
    distance = np.minimum(dist_x, dist_y)

    alpha = result[:, :, 3]
    near_edge = (distance < feather_px) & (alpha != 0)
    falloff = np.broadcast_to(distance / feather_px, alpha.shape)
    alpha[near_edge] = round_half_up_array(alpha[near_edge] * falloff[near_edge]).astype(np.uint8)
    return result


def soften_shadow_edges(buffer: PixelBuffer) -> PixelBuffer:
    """Remove hard shadow cut lines left by the removal service."""
    edge_rows, edge_alpha = find_shadow_edges(buffer.pixels[:, :, 3])
    extended = extend_shadow_fade(buffer.pixels, edge_rows, edge_alpha)
    blurred = blur_shadow_band(extended)
    return buffer.with_pixels(feather_border(blurred))


# =============================================================================
# Placement padding
# =============================================================================

def pad_for_placement(buffer: PixelBuffer) -> Tuple[PixelBuffer, Padding]:
    """
    Wrap the cutout in transparent margins sized for the ground shadow.

    Returns the padded buffer and the padding, so bounds measured before
    padding can be moved into padded space with Bounds.offset().
    """
    padding = Padding(
        top=round_half_up(buffer.height * PLACEMENT_PAD_TOP_PCT),
        bottom=round_half_up(buffer.height * PLACEMENT_PAD_BOTTOM_PCT),
        left=round_half_up(buffer.width * PLACEMENT_PAD_SIDE_PCT),
        right=round_half_up(buffer.width * PLACEMENT_PAD_SIDE_PCT),
    )
    return _extend(buffer, padding, (0, 0, 0, 0)), padding


def trim_transparent_margins(buffer: PixelBuffer) -> Tuple[PixelBuffer, Padding]:
    """
    Crop away rows and columns with no visible pixel.

    Returns the cropped buffer and the insets removed from each edge, so bounds
    measured on the full buffer can be moved with Bounds.inset(). A buffer with
    nothing visible is returned whole.
    """
    alpha = buffer.alpha
    rows = np.flatnonzero(alpha.any(axis=1))
    cols = np.flatnonzero(alpha.any(axis=0))
    if rows.size == 0:
        return buffer.copy(), Padding()

    removed = Padding(
        top=int(rows[0]),
        bottom=int(buffer.height - 1 - rows[-1]),
        left=int(cols[0]),
        right=int(buffer.width - 1 - cols[-1]),
    )
    pixels = buffer.pixels[rows[0]:rows[-1] + 1, cols[0]:cols[-1] + 1].copy()
    return buffer.with_pixels(pixels), removed
