# core/stability_client.py
import base64
import logging
from typing import Any, Dict, Optional
from config.settings import settings
from core.http import (
    ClientFactory,
    bearer,
    default_client_factory,
    provider_message,
    raise_for_poll,
    raise_for_provider,
)
from util.constants import ExternalURIs
from util.errors import ExternalApiError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "stability"
_MAX_IMAGE_BYTES = 9 * 1024 * 1024
_SUPPORTED_IMAGE_TYPES = ("image/jpeg", "image/png")


class StabilityClient:
    """Stability image-to-video: multipart submit, then a result endpoint that answers 202 until ready."""

    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    @staticmethod
    def _auth() -> Dict[str, str]:
        return bearer(settings.require("STABILITY_API_KEY"))

    async def start_image_to_video(
        self,
        image: bytes,
        content_type: Optional[str] = None,
        *,
        seed: int = 0,
        cfg_scale: float = 1.8,
        motion_bucket_id: int = 127,
    ) -> str:
        mime = (content_type or "").split(";")[0].strip().lower()
        if mime not in _SUPPORTED_IMAGE_TYPES:
            logger.warning("stability.image.type mime=%s using=image/png", mime or "-")
            mime = "image/png"
        if len(image) > _MAX_IMAGE_BYTES:
            logger.warning("stability.image.large bytes=%d", len(image))

        files = {"image": (f"image.{mime.split('/')[1]}", image, mime)}
        data = {
            "seed": str(seed),
            "cfg_scale": str(cfg_scale),
            "motion_bucket_id": str(motion_bucket_id),
        }
        with timed(logger, "stability.submit", bytes=len(image)):
            async with self._http() as client:
                res = await client.post(
                    ExternalURIs.STABILITY_IMAGE_TO_VIDEO,
                    headers=self._auth(),
                    files=files,
                    data=data,
                )
        raise_for_provider(res, PROVIDER, "Stability API error on initiation")

        generation_id = (res.json() or {}).get("id")
        if not generation_id:
            raise ExternalApiError(
                "No generation ID returned from Stability API", provider=PROVIDER
            )
        return str(generation_id)

    async def get_result(self, generation_id: str) -> Dict[str, Any]:
        """
        Raw status shaped for the reconciler:
          200 -> {"status": "completed", "video_url": "data:video/mp4;base64,..."}
          202 -> {"status": "pending"}
          404 -> {"status": "failed", "error": ...}
        """
        headers = {**self._auth(), "Accept": "video/*"}
        async with self._http() as client:
            res = await client.get(
                f"{ExternalURIs.STABILITY_IMAGE_TO_VIDEO}/result/{generation_id}",
                headers=headers,
            )

        if res.status_code == 202:
            return {"status": "pending"}
        if res.status_code == 404:
            return {
                "status": "failed",
                "error": provider_message(res) or "Generation not found at Stability API",
            }
        raise_for_poll(res, PROVIDER, "Stability result check failed")

        encoded = base64.b64encode(res.content).decode("ascii")
        return {"status": "completed", "video_url": f"data:video/mp4;base64,{encoded}"}
