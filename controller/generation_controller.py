# controller/generation_controller.py
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from controller.controller_dependencies import get_website_generation_service, rate_limit
from core.streaming import watch_generation
from model.generation import (
    GenerationStatus,
    GenerationUpdates,
    WebsiteGenerationRequest,
    WebsiteGenerationStarted,
)
from service.website_generation_service import WebsiteGenerationService
from util.constants import InternalURIs

generation_router = APIRouter(tags=["generation"], dependencies=[Depends(rate_limit)])


@generation_router.post(
    InternalURIs.GENERATION_START,
    response_model=WebsiteGenerationStarted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_generation(
    payload: WebsiteGenerationRequest,
    service: WebsiteGenerationService = Depends(get_website_generation_service),
) -> WebsiteGenerationStarted:
    generation_id = await service.start(payload.prompt, payload.features)
    return WebsiteGenerationStarted(generationId=generation_id)


@generation_router.get(
    InternalURIs.GENERATION_STATUS,
    response_model=GenerationStatus,
    response_model_exclude_none=True,
)
async def generation_status(
    id: str = Query(..., min_length=1),
    service: WebsiteGenerationService = Depends(get_website_generation_service),
) -> GenerationStatus:
    return await service.get_status(id)


@generation_router.get(
    InternalURIs.GENERATION_UPDATES,
    response_model=GenerationUpdates,
    response_model_by_alias=True,
)
async def generation_updates(
    id: str = Query(..., min_length=1),
    service: WebsiteGenerationService = Depends(get_website_generation_service),
) -> GenerationUpdates:
    return await service.get_updates(id)


@generation_router.get(InternalURIs.GENERATION_WATCH)
async def watch_generation_updates(
    generation_id: str,
    service: WebsiteGenerationService = Depends(get_website_generation_service),
):
    async def _check(gid: str) -> dict:
        return (await service.get_updates(gid)).model_dump(by_alias=True)

    return StreamingResponse(
        watch_generation(generation_id, _check), media_type="application/x-ndjson"
    )
