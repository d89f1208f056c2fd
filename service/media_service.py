# service/media_service.py
import logging
from typing import Optional
from core.pexels_client import PexelsClient
from model.api import PexelsSearchParams, PexelsSearchResponse

logger = logging.getLogger(__name__)


class MediaService:
    def __init__(self, pexels: Optional[PexelsClient] = None) -> None:
        self._pexels = pexels or PexelsClient()

    async def search_photos(self, params: PexelsSearchParams) -> PexelsSearchResponse:
        result = await self._pexels.search(params)
        logger.info(
            "media.pexels.search page=%d results=%d total=%d",
            params.page,
            len(result.photos),
            result.total_results,
        )
        return result
