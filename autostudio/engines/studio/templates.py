"""
Background template identifiers.

Templates are referenced by a small fixed set of ids. User-uploaded
backgrounds use the form "user:<owner_id>/<path>" and are only honoured for
their owner.
"""

from dataclasses import dataclass
from typing import Optional

from autostudio.core.exceptions import AssetError

BACKGROUND_TEMPLATES = ("showroom-grey", "studio-white", "studio-gray", "branded-gradient")
DEFAULT_BACKGROUND = "showroom-grey"
USER_BACKGROUND_PREFIX = "user:"


@dataclass(frozen=True)
class BackgroundRef:
    template_id: str
    user_path: Optional[str] = None

    @property
    def is_user_upload(self) -> bool:
        return self.user_path is not None


def resolve_background(
    requested: Optional[str],
    owner_id: Optional[str] = None,
    default: str = DEFAULT_BACKGROUND,
    strict: bool = False,
) -> BackgroundRef:
    """
    Map a requested background to a template id or an owned user upload.

    Unknown ids fall back to the default unless `strict` is set.
    """
    if not requested:
        return BackgroundRef(default)

    if requested.startswith(USER_BACKGROUND_PREFIX):
        path = requested[len(USER_BACKGROUND_PREFIX):]
        if owner_id and path.startswith(f"{owner_id}/"):
            return BackgroundRef(default, user_path=path)
        if strict:
            raise AssetError("Background does not belong to this user", asset_id=requested)
        return BackgroundRef(default)

    if requested in BACKGROUND_TEMPLATES:
        return BackgroundRef(requested)

    if strict:
        raise AssetError(f"Unknown background template '{requested}'", asset_id=requested)
    return BackgroundRef(default)
