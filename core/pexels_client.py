# core/pexels_client.py
import logging
import random
from typing import Optional
from config.settings import settings
from core.http import ClientFactory, default_client_factory, raise_for_provider
from model.api import PexelsPhoto, PexelsSearchParams, PexelsSearchResponse
from util.constants import ExternalURIs
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "pexels"
MAX_PER_PAGE = 80


class PexelsClient:
    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    async def search(self, params: PexelsSearchParams) -> PexelsSearchResponse:
        query = {
            "query": params.query,
            "page": str(params.page),
            "per_page": str(min(params.perPage, MAX_PER_PAGE)),
        }
        for key in ("orientation", "size", "color"):
            value = getattr(params, key)
            if value:
                query[key] = value

        # Pexels takes the bare key, no Bearer prefix
        headers = {"Authorization": settings.require("PEXELS_API_KEY")}
        with timed(logger, "pexels.search", page=params.page):
            async with self._http() as client:
                res = await client.get(
                    f"{ExternalURIs.PEXELS_API}/search", params=query, headers=headers
                )
        raise_for_provider(res, PROVIDER, f"Pexels API error ({res.status_code})")
        return PexelsSearchResponse.model_validate(res.json())

    async def random_photos(
        self, query: str, count: int = 1, orientation: Optional[str] = None
    ) -> list[PexelsPhoto]:
        result = await self.search(
            PexelsSearchParams(
                query=query, page=1, perPage=min(max(count, 1), MAX_PER_PAGE), orientation=orientation
            )
        )
        photos = list(result.photos)
        random.shuffle(photos)
        return photos[:count]
