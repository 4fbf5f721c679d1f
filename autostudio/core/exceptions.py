"""
Global Exception Definitions

Provides structured errors for the showroom pipeline. Every error can be
rendered into the JSON payload returned by the calling layer.
"""

from typing import Optional, Dict, Any
from datetime import datetime

from autostudio.core.logging import job_id_var


class StudioBaseException(Exception):
    """Base exception for the showroom pipeline."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        job_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.job_id = job_id or job_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured error payload for the calling layer."""
        return {
            "error": self.message,
            "job_id": self.job_id,
            "code": self.code,
            "stage": self.stage,
            "details": self.details,
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }


class ValidationError(StudioBaseException):
    """Raised when an upload cannot be decoded or is otherwise unusable."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class AssetError(StudioBaseException):
    """Raised when an explicitly requested asset id is unknown."""

    def __init__(self, message: str, asset_id: str, **kwargs):
        super().__init__(message, code=404, **kwargs)
        self.details["asset_id"] = asset_id


class PipelineStageError(StudioBaseException):
    """Raised when a pipeline stage fails."""

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, code=500, stage=stage, **kwargs)


class ExternalAPIError(StudioBaseException):
    """Raised when the background-removal service call fails."""

    def __init__(self, message: str, service: str, http_status: Optional[int] = None, **kwargs):
        kwargs.setdefault("stage", "removal")
        super().__init__(message, code=502, **kwargs)
        self.details["service"] = service
        self.details["http_status"] = http_status
