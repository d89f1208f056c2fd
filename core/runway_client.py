# core/runway_client.py
import logging
from typing import Any, Dict, Optional
from config.settings import settings
from core.http import (
    ClientFactory,
    bearer,
    default_client_factory,
    json_or_empty,
    raise_for_poll,
    raise_for_provider,
)
from util.constants import ExternalURIs
from util.errors import ExternalApiError, TransientPollError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "runway"


class RunwayClient:
    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    @staticmethod
    def _auth() -> Dict[str, str]:
        return bearer(settings.require("RUNWAY_API_KEY"))

    async def create_video(self, prompt: str, image: str) -> str:
        with timed(logger, "runway.create"):
            async with self._http() as client:
                res = await client.post(
                    ExternalURIs.RUNWAY_VIDEO,
                    headers=self._auth(),
                    json={"prompt": prompt, "image": image},
                )
        raise_for_provider(res, PROVIDER, "API Error")
        generation_id = json_or_empty(res).get("id")
        if not generation_id:
            raise ExternalApiError("No generation ID returned from Runway", provider=PROVIDER)
        logger.info("runway.create.ok id=%s", generation_id)
        return str(generation_id)

    async def get_video(self, generation_id: str) -> Dict[str, Any]:
        """200 means done (carries video_url); 202 means still processing."""
        async with self._http() as client:
            res = await client.get(
                f"{ExternalURIs.RUNWAY_VIDEO}/{generation_id}", headers=self._auth()
            )
        raise_for_poll(res, PROVIDER, "Runway status check failed")
        if res.status_code == 202:
            return {"status": "pending"}
        if res.status_code != 200:
            raise TransientPollError(
                f"Unexpected status code: {res.status_code}",
                provider=PROVIDER,
                upstream_status=res.status_code,
            )
        body = json_or_empty(res)
        return {"status": "completed", "video_url": body.get("video_url")}
