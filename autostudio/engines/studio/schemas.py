from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Tuple
from enum import Enum


class PhotoMode(str, Enum):
    EXTERIOR = "exterior"
    INTERIOR = "interior"


class Padding(BaseModel):
    """Pixel insets added around a buffer."""
    model_config = ConfigDict(frozen=True)

    top: int = Field(0, ge=0)
    bottom: int = Field(0, ge=0)
    left: int = Field(0, ge=0)
    right: int = Field(0, ge=0)


class Bounds(BaseModel):
    """Inclusive pixel bounding box. Invalid boxes span the full frame."""
    model_config = ConfigDict(frozen=True)

    min_x: int
    max_x: int
    min_y: int
    max_y: int
    valid: bool = True

    @classmethod
    def full_frame(cls, width: int, height: int) -> "Bounds":
        return cls(
            min_x=0,
            max_x=max(0, width - 1),
            min_y=0,
            max_y=max(0, height - 1),
            valid=False,
        )

    @property
    def width(self) -> int:
        return max(1, self.max_x - self.min_x + 1)

    @property
    def height(self) -> int:
        return max(1, self.max_y - self.min_y + 1)

    @property
    def center_x(self) -> float:
        return self.min_x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.min_y + self.height / 2

    @property
    def bottom(self) -> int:
        """Lowest row, never zero so it can be used as a divisor."""
        return max(1, self.max_y)

    def offset(self, padding: Padding) -> "Bounds":
        """Translate into the coordinate space of a buffer padded by `padding`."""
        return self.model_copy(update={
            "min_x": self.min_x + padding.left,
            "max_x": self.max_x + padding.left,
            "min_y": self.min_y + padding.top,
            "max_y": self.max_y + padding.top,
        })

    def inset(self, trimmed: Padding) -> "Bounds":
        """Translate into the coordinate space of a buffer cropped by `trimmed`."""
        return self.model_copy(update={
            "min_x": max(0, self.min_x - trimmed.left),
            "max_x": max(0, self.max_x - trimmed.left),
            "min_y": max(0, self.min_y - trimmed.top),
            "max_y": max(0, self.max_y - trimmed.top),
        })

    def contains(self, other: "Bounds") -> bool:
        return (
            self.min_x <= other.min_x
            and self.max_x >= other.max_x
            and self.min_y <= other.min_y
            and self.max_y >= other.max_y
        )


class SubjectAnalysis(BaseModel):
    """Alpha-channel measurements of one cutout. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    buffer_width: int
    buffer_height: int
    has_alpha: bool
    soft: Bounds
    solid: Bounds
    soft_coverage: float = Field(..., ge=0.0, le=1.0)
    solid_coverage: float = Field(..., ge=0.0, le=1.0)
    soft_width_pct: float = Field(..., ge=0.0, le=1.0)
    soft_height_pct: float = Field(..., ge=0.0, le=1.0)
    bottom_touch_ratio: float = Field(..., ge=0.0, le=1.0)
    opaque_ratio: float = Field(..., ge=0.0, le=1.0)

    def offset(self, padding: Padding) -> "SubjectAnalysis":
        """Same measurements with both boxes moved into padded-buffer space."""
        return self.model_copy(update={
            "soft": self.soft.offset(padding),
            "solid": self.solid.offset(padding),
        })

    def inset(self, trimmed: Padding) -> "SubjectAnalysis":
        return self.model_copy(update={
            "soft": self.soft.inset(trimmed),
            "solid": self.solid.inset(trimmed),
        })


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: PhotoMode
    interior_hint: bool = False


class CompositePlan(BaseModel):
    """Where the scaled subject lands on the 16:9 working canvas."""
    model_config = ConfigDict(frozen=True)

    canvas_width: int = Field(..., gt=0)
    canvas_height: int = Field(..., gt=0)
    scale: float = Field(..., gt=0)
    left: int
    top: int
    mode: PhotoMode = PhotoMode.EXTERIOR
    scaled_width: int = Field(..., gt=0)
    scaled_height: int = Field(..., gt=0)
    floor_y: Optional[int] = None  # exterior only
    width_pct: float = 0.0  # scaled reference-box width / canvas width

    @property
    def canvas_size(self) -> Tuple[int, int]:
        return self.canvas_width, self.canvas_height

    @property
    def scaled_size(self) -> Tuple[int, int]:
        return self.scaled_width, self.scaled_height


class UserPreferences(BaseModel):
    """Per-user settings as stored by the settings layer (whole percentages)."""

    car_scale: Optional[int] = Field(None, description="Target car width, percent of frame (60-95)")
    logo_scale: Optional[int] = Field(None, description="Logo width, percent of frame (5-20)")
    shadow_intensity: Optional[int] = Field(None, description="Shadow strength 0-100")

    def target_width_pct(self, default: float, low: float = 0.60, high: float = 0.95) -> float:
        if not self.car_scale:
            return default
        return min(high, max(low, self.car_scale / 100))

    def logo_width_pct(self, default: float, low: float = 0.05, high: float = 0.20) -> float:
        if not self.logo_scale:
            return default
        return min(high, max(low, self.logo_scale / 100))

    def shadow_intensity_value(self, default: int = 100) -> int:
        if self.shadow_intensity is None:
            return default
        return int(min(100, max(0, self.shadow_intensity)))
