# controller/media_controller.py
from fastapi import APIRouter, Depends
from controller.controller_dependencies import get_media_service, rate_limit
from model.api import PexelsSearchParams, PexelsSearchResponse
from service.media_service import MediaService
from util.constants import InternalURIs

media_router = APIRouter(tags=["media"], dependencies=[Depends(rate_limit)])


@media_router.get(InternalURIs.PEXELS_SEARCH, response_model=PexelsSearchResponse)
async def search_pexels(
    params: PexelsSearchParams = Depends(),
    service: MediaService = Depends(get_media_service),
) -> PexelsSearchResponse:
    return await service.search_photos(params)
