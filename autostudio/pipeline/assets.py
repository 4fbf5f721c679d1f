"""
Asset Loading

Background templates, user-uploaded backgrounds and per-user logos are read
from the local filesystem. A missing asset is never an error: the loaders
return None and the compositor falls back to its generated backdrop or
skips the logo.
"""

from pathlib import Path
from typing import Optional, Tuple

from autostudio.core.config import settings
from autostudio.core.logging import get_logger
from autostudio.engines.studio.templates import BackgroundRef, resolve_background

logger = get_logger(__name__)


class LocalAssetStore:
    """Filesystem-backed asset lookup."""

    def __init__(
        self,
        templates_dir: str = settings.BACKGROUND_TEMPLATES_DIR,
        user_backgrounds_dir: str = settings.USER_BACKGROUNDS_DIR,
        logos_dir: str = settings.LOGOS_DIR,
    ):
        self.templates_dir = Path(templates_dir)
        self.user_backgrounds_dir = Path(user_backgrounds_dir)
        self.logos_dir = Path(logos_dir)

    def _read(self, base: Path, relative: str) -> Optional[bytes]:
        path = (base / relative).resolve()
        # Refuse paths that escape the asset directory
        if base.resolve() not in path.parents:
            logger.warning("asset_path_rejected", path=relative)
            return None
        if not path.is_file():
            logger.debug("asset_missing", path=str(path))
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning("asset_unreadable", path=str(path), error=str(e))
            return None

    def load_template(self, template_id: str) -> Optional[bytes]:
        return self._read(self.templates_dir, f"{template_id}.jpg")

    def load_background(self, ref: BackgroundRef) -> Optional[bytes]:
        """User upload when the reference names one, else the template."""
        if ref.is_user_upload:
            data = self._read(self.user_backgrounds_dir, ref.user_path)
            if data is not None:
                return data
            logger.info("user_background_unavailable", path=ref.user_path)
        return self.load_template(ref.template_id)

    def load_logo(self, owner_id: Optional[str]) -> Optional[bytes]:
        if not owner_id:
            return None
        return self._read(self.logos_dir, f"{owner_id}.png")

    def load_for_job(
        self,
        requested_background: Optional[str],
        owner_id: Optional[str] = None,
        default_background: str = settings.DEFAULT_BACKGROUND,
    ) -> Tuple[Optional[bytes], Optional[bytes]]:
        """
        Background and logo bytes for one job.

        Returns:
            Tuple of (background, logo); either may be None
        """
        ref = resolve_background(requested_background, owner_id, default=default_background)
        background = self.load_background(ref)
        logo = self.load_logo(owner_id)

        logger.info(
            "assets_loaded",
            template_id=ref.template_id,
            user_background=ref.is_user_upload,
            background_found=background is not None,
            logo_found=logo is not None
        )
        return background, logo
