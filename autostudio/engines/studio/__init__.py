"""
Studio Engine

Pure raster stages of the showroom compositor:
1. analysis   - alpha bounds and coverage measurement
2. classifier - exterior / interior photo mode
3. shadow     - removal padding, shadow intensity and edge softening
4. placement  - canvas size, scale and offset
5. compositor - background, subject, logo, export
"""

from autostudio.engines.studio.analysis import analyze_subject_bounds
from autostudio.engines.studio.buffer import PixelBuffer
from autostudio.engines.studio.classifier import classify_photo_mode
from autostudio.engines.studio.placement import solve_placement
from autostudio.engines.studio.schemas import (
    Bounds,
    ClassificationResult,
    CompositePlan,
    Padding,
    PhotoMode,
    SubjectAnalysis,
    UserPreferences,
)

__all__ = [
    "PixelBuffer",
    "Bounds",
    "Padding",
    "SubjectAnalysis",
    "PhotoMode",
    "ClassificationResult",
    "CompositePlan",
    "UserPreferences",
    "analyze_subject_bounds",
    "classify_photo_mode",
    "solve_placement",
]
