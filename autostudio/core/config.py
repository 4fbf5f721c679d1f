"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "AutoStudio Showroom Compositor"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production
    DEBUG: bool = False

    # ==========================================================================
    # Export Settings
    # ==========================================================================
    EXPORT_WIDTH: int = 1920
    EXPORT_HEIGHT: int = 1080
    EXPORT_QUALITY: int = 92
    # Written into the JPEG comment of every export so re-uploads can be recognised
    EXPORT_MARKER: str = "autostudio-export/v1"

    # ==========================================================================
    # Placement Settings (canonical values)
    # ==========================================================================
    TARGET_WIDTH_PCT: float = 0.82
    TARGET_WIDTH_MIN: float = 0.60
    TARGET_WIDTH_MAX: float = 0.95
    MIN_WIDTH_FLOOR: float = 0.50
    MIN_WIDTH_SLACK: float = 0.12
    MAX_WIDTH_SLACK: float = 0.08
    MAX_WIDTH_CAP: float = 0.95
    REPROCESSED_MAX_WIDTH_PCT: float = 0.98
    FLOOR_Y_PCT: float = 0.84
    EDGE_MARGIN_PCT: float = 0.05

    # Interior shots
    INTERIOR_FILL_PCT: float = 0.90
    INTERIOR_SCALE_MIN: float = 0.1
    INTERIOR_SCALE_MAX: float = 2.0

    # ==========================================================================
    # Logo & Shadow Settings
    # ==========================================================================
    LOGO_WIDTH_PCT: float = 0.10
    LOGO_WIDTH_MIN: float = 0.05
    LOGO_WIDTH_MAX: float = 0.20
    LOGO_PADDING_PCT: float = 0.012

    SHADOW_INTENSITY: int = 100  # 0-100, 100 leaves the rendered shadow untouched

    # ==========================================================================
    # Reprocessing
    # ==========================================================================
    # Fall back to exact export-size matching when an upload has no marker
    REPROCESS_DETECT_BY_DIMENSIONS: bool = True

    # ==========================================================================
    # Background Removal Service
    # ==========================================================================
    REMOVE_BG_API_URL: str = "https://api.remove.bg/v1.0/removebg"
    REMOVE_BG_API_KEY: Optional[str] = None
    REMOVE_BG_TIMEOUT_SECONDS: float = 60.0
    USE_SIMULATED_REMOVER: bool = False

    # ==========================================================================
    # Assets
    # ==========================================================================
    BACKGROUND_TEMPLATES_DIR: str = "./assets/backgrounds"
    DEFAULT_BACKGROUND: str = "showroom-grey"
    USER_BACKGROUNDS_DIR: str = "./assets/user-backgrounds"
    LOGOS_DIR: str = "./assets/logos"  # <owner_id>.png

    # ==========================================================================
    # Concurrency
    # ==========================================================================
    # Several full-resolution RGBA copies live per job; size this to memory
    MAX_CONCURRENT_JOBS: int = 2

    # ==========================================================================
    # Debug Settings
    # ==========================================================================
    DEBUG_OVERLAY: bool = False  # never honoured when ENVIRONMENT == "production"

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "prod")

    @property
    def debug_overlay_enabled(self) -> bool:
        return self.DEBUG_OVERLAY and not self.is_production

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
