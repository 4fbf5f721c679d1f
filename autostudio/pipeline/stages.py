"""
Pipeline Stage Implementations

Each stage is a separate function that can be called independently and
returns (result, metadata). process_photo chains them for one upload;
process_batch runs independent uploads on a thread pool.
"""

import io
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image

from autostudio.core.config import settings
from autostudio.core.exceptions import (
    ExternalAPIError,
    PipelineStageError,
    StudioBaseException,
    ValidationError,
)
from autostudio.core.logging import clear_job_context, get_logger, set_job_context, with_logging
from autostudio.core.metrics import (
    record_job_completion,
    record_photo_mode,
    set_app_info,
    track_stage_latency,
)
from autostudio.engines.studio.analysis import analyze_subject_bounds
from autostudio.engines.studio.buffer import PixelBuffer
from autostudio.engines.studio.classifier import classify_photo_mode
from autostudio.engines.studio.compositor import compose
from autostudio.engines.studio.overlay import OverlayHook, build_overlay
from autostudio.engines.studio.placement import (
    PlacementConfig,
    is_prior_output,
    resolve_target_fraction,
    solve_placement,
)
from autostudio.engines.studio.schemas import (
    ClassificationResult,
    CompositePlan,
    Padding,
    PhotoMode,
    SubjectAnalysis,
    UserPreferences,
)
from autostudio.engines.studio.shadow import (
    adjust_shadow_intensity,
    crop_removal_output,
    pad_for_placement,
    pad_for_removal,
    soften_shadow_edges,
    trim_transparent_margins,
)
from autostudio.pipeline.removal import BackgroundRemover

logger = get_logger(__name__)

set_app_info(settings.APP_VERSION, settings.ENVIRONMENT)

CONVERSION_QUALITY = 95
REMOVAL_INPUT_QUALITY = 95


def _elapsed_ms(start_time: datetime) -> int:
    return int((datetime.utcnow() - start_time).total_seconds() * 1000)


# =============================================================================
# Stage 1: Intake
# =============================================================================

def detect_file_type(data: bytes) -> str:
    """Real file type from magic bytes; the declared MIME type is not trusted."""
    if len(data) < 12:
        return "unknown"
    if data[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if data[:4] == b"\x89PNG":
        return "png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    # ISO-BMFF container. Pillow decodes AVIF; HEIC needs a decoder plugin and fails intake
    if data[4:8] == b"ftyp":
        return "avif"
    return "unknown"


def convert_to_jpeg(data: bytes, quality: int = CONVERSION_QUALITY) -> bytes:
    with Image.open(io.BytesIO(data)) as image:
        out = io.BytesIO()
        image.convert("RGB").save(out, format="JPEG", quality=quality)
    return out.getvalue()


def process_intake_stage(
    upload_bytes: bytes,
    job_id: str,
    is_reprocessed: Optional[bool] = None,
    config=settings,
) -> Tuple[PixelBuffer, Dict[str, Any]]:
    """
    Validate and decode an upload.

    Args:
        upload_bytes: Raw upload
        job_id: Job ID for logging
        is_reprocessed: Explicit override; detected from the upload when None

    Returns:
        Tuple of (decoded source image, metadata)
    """
    set_job_context(job_id, "intake")
    start_time = datetime.utcnow()

    if not upload_bytes:
        raise ValidationError("No image provided", job_id=job_id, stage="intake")

    with track_stage_latency("intake"):
        file_type = detect_file_type(upload_bytes)
        data = upload_bytes
        converted = False

        try:
            if file_type in ("avif", "unknown"):
                data = convert_to_jpeg(upload_bytes)
                converted = True
            image = PixelBuffer.decode(data)
        except Exception as e:
            logger.warning("intake_decode_failed", file_type=file_type, error=str(e))
            raise ValidationError(
                "Could not process image. The file may be corrupted or in an unsupported format.",
                job_id=job_id,
                stage="intake",
                details={"file_type": file_type}
            )

        if is_reprocessed is None:
            is_reprocessed = is_prior_output(
                image.width,
                image.height,
                comment=image.info.get("comment"),
                marker=config.EXPORT_MARKER,
                detect_by_dimensions=config.REPROCESS_DETECT_BY_DIMENSIONS,
                config=PlacementConfig.from_settings(config),
            )

    metadata = {
        "stage": "intake",
        "file_type": file_type,
        "converted": converted,
        "original_dimensions": image.size,
        "is_reprocessed": is_reprocessed,
        "duration_ms": _elapsed_ms(start_time),
    }

    logger.info(
        "intake_completed",
        file_type=file_type,
        converted=converted,
        original_dimensions=image.size,
        is_reprocessed=is_reprocessed
    )

    return image, metadata


# =============================================================================
# Stage 2: Background Removal
# =============================================================================

def process_removal_stage(
    image: PixelBuffer,
    remover: BackgroundRemover,
    job_id: str,
) -> Tuple[PixelBuffer, Dict[str, Any]]:
    """
    Pre-pad, call the removal service and crop its output back.

    Returns:
        Tuple of (RGBA cutout, metadata)
    """
    set_job_context(job_id, "removal")
    start_time = datetime.utcnow()

    padded, removal_padding = pad_for_removal(image)
    request_bytes = padded.to_jpeg(quality=REMOVAL_INPUT_QUALITY)

    logger.info("removal_starting", input_size=len(request_bytes), padded_dimensions=padded.size)

    with track_stage_latency("removal"):
        try:
            response_bytes = remover(request_bytes)
        except ExternalAPIError as e:
            e.job_id = e.job_id or job_id
            raise
        except Exception as e:
            logger.error("removal_failed", error=str(e))
            raise ExternalAPIError(
                f"Background removal failed: {str(e)}",
                service=type(remover).__name__,
                job_id=job_id
            )

        try:
            raw_cutout = PixelBuffer.decode(response_bytes)
        except Exception as e:
            raise ExternalAPIError(
                f"Background removal returned an undecodable image: {str(e)}",
                service=type(remover).__name__,
                job_id=job_id
            )

        cutout = crop_removal_output(raw_cutout, removal_padding)

    if not raw_cutout.has_alpha:
        # Classified as interior downstream
        logger.warning("removal_without_alpha", cutout_dimensions=raw_cutout.size)

    metadata = {
        "stage": "removal",
        "has_alpha": raw_cutout.has_alpha,
        "removal_padding": removal_padding.model_dump(),
        "cutout_dimensions": cutout.size,
        "output_size": len(response_bytes),
        "duration_ms": _elapsed_ms(start_time),
    }

    logger.info(
        "removal_completed",
        duration_ms=metadata["duration_ms"],
        removal_padding=metadata["removal_padding"],
        cutout_dimensions=cutout.size
    )

    return cutout, metadata


# =============================================================================
# Stage 3: Analysis & Classification
# =============================================================================

def process_analysis_stage(
    cutout: PixelBuffer,
    job_id: str,
) -> Tuple[Tuple[SubjectAnalysis, ClassificationResult], Dict[str, Any]]:
    """Measure the cutout's alpha and choose the photo mode."""
    set_job_context(job_id, "analysis")

    with track_stage_latency("analysis"):
        analysis = analyze_subject_bounds(cutout)
        classification = classify_photo_mode(analysis)

    record_photo_mode(classification.mode.value, classification.interior_hint)

    metadata = {
        "stage": "analysis",
        "mode": classification.mode.value,
        "interior_hint": classification.interior_hint,
        "has_alpha": analysis.has_alpha,
        "opaque_ratio": round(analysis.opaque_ratio, 3),
        "soft_width_pct": round(analysis.soft_width_pct, 3),
        "soft_height_pct": round(analysis.soft_height_pct, 3),
        "bottom_touch_ratio": round(analysis.bottom_touch_ratio, 3),
    }

    logger.info("analysis_completed", **{k: v for k, v in metadata.items() if k != "stage"})

    return (analysis, classification), metadata


# =============================================================================
# Stage 4: Shadow Conditioning
# =============================================================================

def process_conditioning_stage(
    cutout: PixelBuffer,
    shadow_intensity: int,
    job_id: str,
    trim_margins: bool = False,
) -> Tuple[Tuple[PixelBuffer, Padding, Padding], Dict[str, Any]]:
    """
    Dampen and soften the rendered shadow, then pad for placement.

    With trim_margins, empty rows and columns are cropped before padding.
    A re-fed export keeps the whole frame, and its transparent margins
    would otherwise shrink the subject when the padded buffer is fitted
    to the canvas.

    Returns:
        Tuple of ((padded cutout, placement padding, trimmed insets), metadata)
    """
    set_job_context(job_id, "conditioning")

    with track_stage_latency("conditioning"):
        adjusted = adjust_shadow_intensity(cutout, shadow_intensity)
        softened = soften_shadow_edges(adjusted)
        trimmed = Padding()
        if trim_margins:
            softened, trimmed = trim_transparent_margins(softened)
        padded, padding = pad_for_placement(softened)

    metadata = {
        "stage": "conditioning",
        "shadow_intensity": shadow_intensity,
        "placement_padding": padding.model_dump(),
        "trimmed_margins": trimmed.model_dump(),
        "padded_dimensions": padded.size,
    }

    logger.info(
        "conditioning_completed",
        shadow_intensity=shadow_intensity,
        placement_padding=metadata["placement_padding"],
        padded_dimensions=padded.size
    )

    return (padded, padding, trimmed), metadata


# =============================================================================
# Stage 5: Placement
# =============================================================================

def process_placement_stage(
    analysis: SubjectAnalysis,
    classification: ClassificationResult,
    padded: PixelBuffer,
    padding: Padding,
    target_pct: float,
    is_reprocessed: bool,
    job_id: str,
    config: Optional[PlacementConfig] = None,
    trimmed: Optional[Padding] = None,
) -> Tuple[Tuple[CompositePlan, SubjectAnalysis], Dict[str, Any]]:
    """
    Solve the composite plan with bounds moved into padded space.

    `trimmed` is the inset cropped off by the conditioning stage, if any.

    Returns:
        Tuple of ((plan, padded-space analysis), metadata)
    """
    set_job_context(job_id, "placement")
    config = config or PlacementConfig.from_settings(settings)

    with track_stage_latency("placement"):
        if trimmed is not None:
            analysis = analysis.inset(trimmed)
        padded_analysis = analysis.offset(padding)
        plan = solve_placement(
            padded_analysis,
            padded.width,
            padded.height,
            classification.mode,
            target_pct=target_pct,
            is_reprocessed=is_reprocessed,
            config=config,
        )

    metadata = {
        "stage": "placement",
        "mode": plan.mode.value,
        "canvas_size": plan.canvas_size,
        "scale": round(plan.scale, 4),
        "left": plan.left,
        "top": plan.top,
        "floor_y": plan.floor_y,
        "width_pct": round(plan.width_pct, 3),
        "target_pct": round(target_pct, 3),
        "solid_box": (
            padded_analysis.solid.min_x,
            padded_analysis.solid.min_y,
            padded_analysis.solid.max_x,
            padded_analysis.solid.max_y,
        ),
    }

    logger.info("placement_completed", **{k: v for k, v in metadata.items() if k != "stage"})

    return (plan, padded_analysis), metadata


# =============================================================================
# Stage 6: Composite
# =============================================================================

def process_composite_stage(
    padded: PixelBuffer,
    plan: CompositePlan,
    padded_analysis: SubjectAnalysis,
    job_id: str,
    background: Optional[bytes] = None,
    logo: Optional[bytes] = None,
    logo_width_pct: float = settings.LOGO_WIDTH_PCT,
    overlay: Optional[OverlayHook] = None,
    config=settings,
) -> Tuple[bytes, Dict[str, Any]]:
    """Render and encode the final JPEG."""
    set_job_context(job_id, "composite")

    with track_stage_latency("composite"):
        output = compose(
            padded,
            plan,
            soft=padded_analysis.soft,
            solid=padded_analysis.solid,
            background=background,
            logo=logo,
            logo_width_pct=logo_width_pct,
            logo_padding_pct=config.LOGO_PADDING_PCT,
            export_size=(config.EXPORT_WIDTH, config.EXPORT_HEIGHT),
            quality=config.EXPORT_QUALITY,
            marker=config.EXPORT_MARKER,
            overlay=overlay,
        )

    metadata = {
        "stage": "composite",
        "output_size": len(output),
        "export_dimensions": (config.EXPORT_WIDTH, config.EXPORT_HEIGHT),
        "background": "template" if background else "generated",
        "logo": bool(logo),
        "overlay": overlay is not None,
    }

    logger.info("composite_completed", **{k: v for k, v in metadata.items() if k != "stage"})

    return output, metadata


# =============================================================================
# Full pipeline
# =============================================================================

@dataclass
class ProcessingResult:
    job_id: str
    image: bytes
    mode: PhotoMode
    interior_hint: bool
    plan: CompositePlan
    metadata: Dict[str, Any] = field(default_factory=dict)


def process_photo(
    upload_bytes: bytes,
    remover: BackgroundRemover,
    preferences: Optional[UserPreferences] = None,
    background: Optional[bytes] = None,
    logo: Optional[bytes] = None,
    job_id: Optional[str] = None,
    is_reprocessed: Optional[bool] = None,
    overlay: Optional[OverlayHook] = None,
    config=settings,
) -> ProcessingResult:
    """
    Run every stage for one upload.

    Args:
        upload_bytes: Raw upload (JPEG, PNG, WebP, AVIF...)
        remover: Background-removal callable
        preferences: Per-user car scale, logo scale and shadow intensity
        background: Encoded background template or user upload; generated when None
        logo: Encoded logo; skipped when None
        is_reprocessed: Override for prior-output detection
        overlay: Debug overlay; defaults to the configured one

    Returns:
        ProcessingResult with the encoded JPEG and the decisions taken

    Raises:
        ValidationError: upload could not be decoded
        ExternalAPIError: background removal failed
        PipelineStageError: any other stage failure
    """
    job_id = job_id or str(uuid.uuid4())
    preferences = preferences or UserPreferences()
    placement_config = PlacementConfig.from_settings(config)
    if overlay is None:
        overlay = build_overlay(config.debug_overlay_enabled)

    start_time = datetime.utcnow()
    stage_metadata: Dict[str, Any] = {}
    current_stage = "intake"

    try:
        image, stage_metadata["intake"] = process_intake_stage(
            upload_bytes, job_id, is_reprocessed=is_reprocessed, config=config
        )
        is_reprocessed = stage_metadata["intake"]["is_reprocessed"]

        current_stage = "removal"
        cutout, stage_metadata["removal"] = process_removal_stage(image, remover, job_id)

        current_stage = "analysis"
        (analysis, classification), stage_metadata["analysis"] = process_analysis_stage(cutout, job_id)

        default_target = preferences.target_width_pct(
            config.TARGET_WIDTH_PCT, config.TARGET_WIDTH_MIN, config.TARGET_WIDTH_MAX
        )
        target_pct = resolve_target_fraction(
            analysis, image.width, default_target, is_reprocessed, placement_config
        )

        current_stage = "conditioning"
        (padded, padding, trimmed), stage_metadata["conditioning"] = process_conditioning_stage(
            cutout,
            preferences.shadow_intensity_value(config.SHADOW_INTENSITY),
            job_id,
            trim_margins=is_reprocessed,
        )

        current_stage = "placement"
        (plan, padded_analysis), stage_metadata["placement"] = process_placement_stage(
            analysis, classification, padded, padding, target_pct, is_reprocessed, job_id,
            config=placement_config,
            trimmed=trimmed,
        )

        current_stage = "composite"
        output, stage_metadata["composite"] = process_composite_stage(
            padded,
            plan,
            padded_analysis,
            job_id,
            background=background,
            logo=logo,
            logo_width_pct=preferences.logo_width_pct(
                config.LOGO_WIDTH_PCT, config.LOGO_WIDTH_MIN, config.LOGO_WIDTH_MAX
            ),
            overlay=overlay,
            config=config,
        )

    except StudioBaseException as e:
        e.stage = e.stage or current_stage
        record_job_completion("failed", failure_stage=e.stage)
        logger.error("job_failed", stage=e.stage, error=e.message, code=e.code)
        raise

    except Exception as e:
        record_job_completion("failed", failure_stage=current_stage)
        logger.error("job_failed", stage=current_stage, error=str(e), error_type=type(e).__name__)
        raise PipelineStageError(
            f"{current_stage.capitalize()} failed: {str(e)}",
            stage=current_stage,
            job_id=job_id
        ) from e

    finally:
        clear_job_context()

    duration_seconds = (datetime.utcnow() - start_time).total_seconds()
    record_job_completion("completed", duration_seconds=duration_seconds)

    logger.info(
        "job_completed",
        job_id=job_id,
        mode=classification.mode.value,
        interior_hint=classification.interior_hint,
        duration_ms=int(duration_seconds * 1000)
    )

    return ProcessingResult(
        job_id=job_id,
        image=output,
        mode=classification.mode,
        interior_hint=classification.interior_hint,
        plan=plan,
        metadata=stage_metadata,
    )


# =============================================================================
# Batch
# =============================================================================

@dataclass
class BatchItem:
    upload_bytes: bytes
    preferences: Optional[UserPreferences] = None
    background: Optional[bytes] = None
    logo: Optional[bytes] = None
    job_id: Optional[str] = None


@dataclass
class BatchOutcome:
    job_id: str
    result: Optional[ProcessingResult] = None
    error: Optional[StudioBaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def process_batch(
    items: Sequence[Union[BatchItem, bytes]],
    remover: BackgroundRemover,
    max_workers: Optional[int] = None,
    config=settings,
) -> List[BatchOutcome]:
    """
    Process independent uploads concurrently.

    Each item gets its own buffer chain; a failing item is reported in its
    outcome and never affects the others. Outcomes are in input order.
    """
    jobs = [item if isinstance(item, BatchItem) else BatchItem(upload_bytes=item) for item in items]
    for job in jobs:
        job.job_id = job.job_id or str(uuid.uuid4())

    @with_logging("batch_item")
    def run(job: BatchItem) -> BatchOutcome:
        try:
            result = process_photo(
                job.upload_bytes,
                remover,
                preferences=job.preferences,
                background=job.background,
                logo=job.logo,
                job_id=job.job_id,
                config=config,
            )
            return BatchOutcome(job_id=job.job_id, result=result)
        except StudioBaseException as e:
            return BatchOutcome(job_id=job.job_id, error=e)

    workers = max(1, max_workers or config.MAX_CONCURRENT_JOBS)
    logger.info("batch_starting", items=len(jobs), workers=workers)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(run, jobs))

    logger.info(
        "batch_completed",
        items=len(outcomes),
        failed=sum(1 for outcome in outcomes if not outcome.ok)
    )
    return outcomes
