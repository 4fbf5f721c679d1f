"""
Photo-Mode Classifier

Decides between the showroom (exterior) treatment and the plain cabin
(interior) treatment from a SubjectAnalysis. Biased toward EXTERIOR: interior
is reserved for shots without any clean subject silhouette.
"""

from autostudio.engines.studio.schemas import ClassificationResult, PhotoMode, SubjectAnalysis

# Interior: cutout is essentially the whole frame, fully opaque
INTERIOR_OPAQUE_RATIO = 0.995
INTERIOR_FRAME_PCT = 0.96
INTERIOR_SOFT_COVERAGE = 0.99

# Advisory hint: cabin visible through the windows
HINT_OPAQUE_RATIO = 0.85
HINT_SOFT_COVERAGE = 0.85


def classify_photo_mode(analysis: SubjectAnalysis) -> ClassificationResult:
    """First matching rule wins; see module docstring for the bias."""
    if not analysis.has_alpha:
        return ClassificationResult(mode=PhotoMode.INTERIOR, interior_hint=True)

    if not analysis.soft.valid or not analysis.solid.valid:
        return ClassificationResult(mode=PhotoMode.INTERIOR, interior_hint=True)

    fills_frame = (
        analysis.opaque_ratio > INTERIOR_OPAQUE_RATIO
        and analysis.soft_width_pct > INTERIOR_FRAME_PCT
        and analysis.soft_height_pct > INTERIOR_FRAME_PCT
        and analysis.soft_coverage > INTERIOR_SOFT_COVERAGE
    )
    if fills_frame:
        return ClassificationResult(mode=PhotoMode.INTERIOR, interior_hint=True)

    interior_hint = (
        analysis.opaque_ratio > HINT_OPAQUE_RATIO
        and analysis.soft_coverage > HINT_SOFT_COVERAGE
    )
    return ClassificationResult(mode=PhotoMode.EXTERIOR, interior_hint=interior_hint)
