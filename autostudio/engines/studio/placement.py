"""
Placement & Scale Solver

Turns bounding-box measurements (already offset into padded-buffer space)
into a CompositePlan on a 16:9 working canvas.

Exterior shots use the showroom metaphor: the solid box is scaled into a
width window around the target fraction, its lowest solid row rests on the
floor line (84% of canvas height) and it keeps a 5% margin from both walls.
Interior shots simply fit and center the soft box.
"""

from dataclasses import dataclass
from typing import Optional, Union

from autostudio.engines.studio.buffer import round_half_up
from autostudio.engines.studio.schemas import CompositePlan, PhotoMode, SubjectAnalysis

CANVAS_ASPECT = 9 / 16


@dataclass(frozen=True)
class PlacementConfig:
    """Canonical placement constants; see core.config.Settings for overrides."""

    export_width: int = 1920
    export_height: int = 1080
    target_width_pct: float = 0.82
    target_width_min: float = 0.60
    target_width_max: float = 0.95
    min_width_floor: float = 0.50
    min_width_slack: float = 0.12
    max_width_slack: float = 0.08
    max_width_cap: float = 0.95
    reprocessed_max_width_pct: float = 0.98
    floor_y_pct: float = 0.84
    edge_margin_pct: float = 0.05
    interior_fill_pct: float = 0.90
    interior_scale_min: float = 0.1
    interior_scale_max: float = 2.0

    @classmethod
    def from_settings(cls, settings) -> "PlacementConfig":
        return cls(
            export_width=settings.EXPORT_WIDTH,
            export_height=settings.EXPORT_HEIGHT,
            target_width_pct=settings.TARGET_WIDTH_PCT,
            target_width_min=settings.TARGET_WIDTH_MIN,
            target_width_max=settings.TARGET_WIDTH_MAX,
            min_width_floor=settings.MIN_WIDTH_FLOOR,
            min_width_slack=settings.MIN_WIDTH_SLACK,
            max_width_slack=settings.MAX_WIDTH_SLACK,
            max_width_cap=settings.MAX_WIDTH_CAP,
            reprocessed_max_width_pct=settings.REPROCESSED_MAX_WIDTH_PCT,
            floor_y_pct=settings.FLOOR_Y_PCT,
            edge_margin_pct=settings.EDGE_MARGIN_PCT,
            interior_fill_pct=settings.INTERIOR_FILL_PCT,
            interior_scale_min=settings.INTERIOR_SCALE_MIN,
            interior_scale_max=settings.INTERIOR_SCALE_MAX,
        )


DEFAULT_CONFIG = PlacementConfig()


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def clamp_target(target_pct: Optional[float], config: PlacementConfig = DEFAULT_CONFIG) -> float:
    if target_pct is None or target_pct <= 0:
        target_pct = config.target_width_pct
    return clamp(target_pct, config.target_width_min, config.target_width_max)


def canvas_size(solid_width: int, target_pct: float, is_reprocessed: bool,
                config: PlacementConfig = DEFAULT_CONFIG):
    """16:9 canvas sized so the solid box spans `target_pct` of its width."""
    width = round_half_up(solid_width / target_pct)
    if not is_reprocessed:
        width = max(config.export_width, width)
    width = max(1, width)
    return width, max(1, round_half_up(width * CANVAS_ASPECT))


# =============================================================================
# Reprocessing
# =============================================================================

def is_prior_output(
    width: int,
    height: int,
    comment: Optional[Union[bytes, str]] = None,
    marker: Optional[str] = None,
    detect_by_dimensions: bool = True,
    config: PlacementConfig = DEFAULT_CONFIG,
) -> bool:
    """
    Whether an upload is itself an earlier export.

    An explicit export marker in the JPEG comment is authoritative; exact
    export dimensions are only a fallback heuristic.
    """
    if marker and comment:
        text = comment.decode("utf-8", "ignore") if isinstance(comment, bytes) else comment
        if marker in text:
            return True
    if detect_by_dimensions:
        return (width, height) == (config.export_width, config.export_height)
    return False


def resolve_target_fraction(
    cutout: SubjectAnalysis,
    original_width: int,
    default_target: Optional[float],
    is_reprocessed: bool,
    config: PlacementConfig = DEFAULT_CONFIG,
) -> float:
    """
    Target width fraction for this job.

    For a prior output the car's current share of the frame is kept, so
    repeated processing neither shrinks nor inflates it.
    """
    if not is_reprocessed:
        return clamp_target(default_target, config)
    current_pct = cutout.solid.width / max(1, original_width)
    return clamp(current_pct, config.target_width_min, config.target_width_max)


# =============================================================================
# Solver
# =============================================================================

def solve_exterior(
    analysis: SubjectAnalysis,
    padded_width: int,
    padded_height: int,
    target_pct: float,
    is_reprocessed: bool = False,
    config: PlacementConfig = DEFAULT_CONFIG,
) -> CompositePlan:
    solid = analysis.solid
    solid_width = solid.width
    solid_bottom = solid.bottom

    canvas_width, canvas_height = canvas_size(solid_width, target_pct, is_reprocessed, config)

    min_pct = max(config.min_width_floor, target_pct - config.min_width_slack)
    if is_reprocessed:
        max_pct = config.reprocessed_max_width_pct
    else:
        max_pct = min(config.max_width_cap, target_pct + config.max_width_slack)

    scale = 1.0
    width_pct = solid_width / canvas_width
    if width_pct < min_pct:
        scale = min_pct / width_pct
    elif width_pct > max_pct:
        scale = max_pct / width_pct

    floor_y = round_half_up(canvas_height * clamp(config.floor_y_pct, 0.0, 1.0))
    max_scale_to_fit = min(
        canvas_width / max(1, padded_width),
        canvas_height / max(1, padded_height),
        max(1, floor_y) / solid_bottom,
    )
    scale = min(scale, max_scale_to_fit)

    scaled_width = max(1, round_half_up(padded_width * scale))
    scaled_height = max(1, round_half_up(padded_height * scale))

    left = round_half_up(canvas_width / 2 - solid.center_x * scale)
    top = round_half_up(floor_y - solid_bottom * scale)

    # Keep the body off the showroom walls
    margin = round_half_up(canvas_width * config.edge_margin_pct)
    solid_left = left + solid.min_x * scale
    solid_right = left + solid.max_x * scale
    if solid_left < margin:
        left = round_half_up(left + (margin - solid_left))
    elif solid_right > canvas_width - margin:
        left = round_half_up(left - (solid_right - (canvas_width - margin)))

    left = int(clamp(left, 0, max(0, canvas_width - scaled_width)))
    top = int(clamp(top, 0, max(0, canvas_height - scaled_height)))

    return CompositePlan(
        canvas_width=canvas_width,
        canvas_height=canvas_height,
        scale=scale,
        left=left,
        top=top,
        mode=PhotoMode.EXTERIOR,
        scaled_width=scaled_width,
        scaled_height=scaled_height,
        floor_y=floor_y,
        width_pct=solid_width * scale / canvas_width,
    )


def solve_interior(
    analysis: SubjectAnalysis,
    padded_width: int,
    padded_height: int,
    target_pct: float,
    is_reprocessed: bool = False,
    config: PlacementConfig = DEFAULT_CONFIG,
) -> CompositePlan:
    soft = analysis.soft
    canvas_width, canvas_height = canvas_size(analysis.solid.width, target_pct, is_reprocessed, config)

    available_width = canvas_width * config.interior_fill_pct
    available_height = canvas_height * config.interior_fill_pct
    scale = min(
        available_width / soft.width,
        available_height / soft.height,
        canvas_width / max(1, padded_width),
        canvas_height / max(1, padded_height),
    )
    scale = clamp(scale, config.interior_scale_min, config.interior_scale_max)

    scaled_width = max(1, round_half_up(padded_width * scale))
    scaled_height = max(1, round_half_up(padded_height * scale))

    left = round_half_up(canvas_width / 2 - soft.center_x * scale)
    top = round_half_up(canvas_height / 2 - soft.center_y * scale)
    left = int(clamp(left, 0, max(0, canvas_width - scaled_width)))
    top = int(clamp(top, 0, max(0, canvas_height - scaled_height)))

    return CompositePlan(
        canvas_width=canvas_width,
        canvas_height=canvas_height,
        scale=scale,
        left=left,
        top=top,
        mode=PhotoMode.INTERIOR,
        scaled_width=scaled_width,
        scaled_height=scaled_height,
        floor_y=None,
        width_pct=soft.width * scale / canvas_width,
    )


def solve_placement(
    analysis: SubjectAnalysis,
    padded_width: int,
    padded_height: int,
    mode: PhotoMode,
    target_pct: Optional[float] = None,
    is_reprocessed: bool = False,
    config: PlacementConfig = DEFAULT_CONFIG,
) -> CompositePlan:
    """
    Compute canvas size, subject scale and (left, top) offset.

    Args:
        analysis: Measurements with bounds already in padded-buffer space
        padded_width: Width of the padded cutout
        padded_height: Height of the padded cutout
        mode: Classifier outcome
        target_pct: Desired solid-box width as a fraction of canvas width
        is_reprocessed: The upload was itself an earlier export
    """
    target = clamp_target(target_pct, config)
    solver = solve_exterior if mode == PhotoMode.EXTERIOR else solve_interior
    return solver(analysis, padded_width, padded_height, target, is_reprocessed, config)
