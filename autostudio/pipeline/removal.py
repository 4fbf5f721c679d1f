"""
Background Removal Boundary

The pipeline talks to background removal through a single callable:
encoded JPEG in, encoded RGBA PNG (with a rendered ground shadow) out.

- RemoveBgClient: the remove.bg HTTP API via httpx
- SimulatedRemover: offline stand-in that keys out the backdrop colour
"""

import io
from typing import Optional, Protocol

import httpx
import numpy as np
from PIL import Image

from autostudio.core.config import Settings
from autostudio.core.exceptions import ExternalAPIError
from autostudio.core.logging import get_logger
from autostudio.core.metrics import record_removal_call
from autostudio.engines.studio.buffer import PixelBuffer

logger = get_logger(__name__)

SERVICE_NAME = "remove_bg"
INVALID_FILE_TYPE_MESSAGE = "Invalid file type. Please upload a JPG, PNG, WebP, AVIF, or HEIC image."


class BackgroundRemover(Protocol):
    def __call__(self, image_bytes: bytes) -> bytes:
        ...


# =============================================================================
# remove.bg
# =============================================================================

class RemoveBgClient:
    """
    Synchronous remove.bg client.

    Failures raise ExternalAPIError and are never retried here; retry policy
    belongs to whoever schedules the job.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.remove.bg/v1.0/removebg",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    def __call__(self, image_bytes: bytes) -> bytes:
        if not self.api_key:
            raise ExternalAPIError("REMOVE_BG_API_KEY not configured", service=SERVICE_NAME)

        files = {"image_file": ("image.jpg", image_bytes, "image/jpeg")}
        data = {"size": "full", "add_shadow": "true", "format": "png"}
        headers = {"X-Api-Key": self.api_key}

        logger.info("removal_request", input_size=len(image_bytes))

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, files=files, data=data, headers=headers)
        except httpx.TimeoutException:
            record_removal_call(status="timeout", http_status=0)
            raise ExternalAPIError("Background removal API timeout", service=SERVICE_NAME)
        except httpx.HTTPError as e:
            record_removal_call(status="error", http_status=0)
            raise ExternalAPIError(f"Background removal API call failed: {str(e)}", service=SERVICE_NAME)

        record_removal_call(
            status="success" if response.status_code == 200 else "error",
            http_status=response.status_code
        )

        if response.status_code != 200:
            error_text = response.text
            logger.error("removal_api_error", http_status=response.status_code, error=error_text)
            if "invalid_file_type" in error_text:
                message = INVALID_FILE_TYPE_MESSAGE
            else:
                message = f"Remove.bg API error: {response.status_code} - {error_text}"
            raise ExternalAPIError(message, service=SERVICE_NAME, http_status=response.status_code)

        return response.content


# =============================================================================
# Offline stand-in
# =============================================================================

class SimulatedRemover:
    """
    Development remover: pixels close to the backdrop colour become transparent.

    The backdrop colour is the median of the outermost pixel ring, so it
    works on the neutral grey margin the pipeline pads uploads with and on
    any photo shot against a uniform background.
    """

    def __init__(self, tolerance: int = 40, ramp: int = 40):
        self.tolerance = tolerance
        self.ramp = ramp

    @staticmethod
    def backdrop_color(pixels: np.ndarray) -> np.ndarray:
        ring = np.concatenate([
            pixels[0, :, :3], pixels[-1, :, :3],
            pixels[:, 0, :3], pixels[:, -1, :3],
        ])
        return np.median(ring, axis=0)

    def __call__(self, image_bytes: bytes) -> bytes:
        with Image.open(io.BytesIO(image_bytes)) as image:
            rgb = np.array(image.convert("RGB"), dtype=np.float64)

        distance = np.abs(rgb - self.backdrop_color(rgb)).max(axis=2)
        alpha = np.clip((distance - self.tolerance) * 255.0 / max(1, self.ramp), 0, 255)

        pixels = np.empty(rgb.shape[:2] + (4,), dtype=np.uint8)
        pixels[:, :, :3] = rgb.astype(np.uint8)
        pixels[:, :, 3] = alpha.astype(np.uint8)
        return PixelBuffer(pixels).to_png()


def get_background_remover(config: Settings) -> BackgroundRemover:
    """Pick the remover implementation from configuration."""
    if config.USE_SIMULATED_REMOVER:
        logger.info("removal_simulated")
        return SimulatedRemover()
    return RemoveBgClient(
        api_key=config.REMOVE_BG_API_KEY,
        api_url=config.REMOVE_BG_API_URL,
        timeout=config.REMOVE_BG_TIMEOUT_SECONDS,
    )
