# controller/video_controller.py
from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from controller.controller_dependencies import get_video_service, rate_limit
from core.streaming import watch_video
from model.video import (
    RunwayVideoRequest,
    RunwayVideoResponse,
    StabilityVideoRequest,
    StabilityVideoResponse,
    VideoGenerationRequest,
    VideoGenerationStarted,
    VideoStatusResponse,
)
from service.video_service import VideoService
from util.constants import InternalURIs

video_router = APIRouter(tags=["video"], dependencies=[Depends(rate_limit)])


@video_router.post(
    InternalURIs.VIDEO_GENERATE,
    response_model=VideoGenerationStarted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_video(
    payload: VideoGenerationRequest,
    service: VideoService = Depends(get_video_service),
) -> VideoGenerationStarted:
    return await service.generate_video(payload)


@video_router.get(InternalURIs.VIDEO_STATUS, response_model=VideoStatusResponse)
async def get_video_status(
    generation_id: str,
    service: VideoService = Depends(get_video_service),
) -> VideoStatusResponse:
    return await service.get_video_status(generation_id)


@video_router.get(InternalURIs.VIDEO_WATCH)
async def watch_video_status(
    generation_id: str,
    service: VideoService = Depends(get_video_service),
):
    async def _check(gid: str) -> dict:
        return (await service.get_video_status(gid)).model_dump()

    return StreamingResponse(
        watch_video(generation_id, _check), media_type="application/x-ndjson"
    )


@video_router.post(
    InternalURIs.STABILITY_GENERATE,
    response_model=StabilityVideoResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_stability_video(
    payload: StabilityVideoRequest,
    service: VideoService = Depends(get_video_service),
) -> StabilityVideoResponse:
    return await service.generate_stability_video(payload)


@video_router.get(InternalURIs.STABILITY_STATUS, response_model=StabilityVideoResponse)
async def check_stability_status(
    generation_id: str,
    service: VideoService = Depends(get_video_service),
) -> StabilityVideoResponse:
    return await service.check_stability_status(generation_id)


@video_router.post(InternalURIs.RUNWAY_CREATE, response_model=RunwayVideoResponse)
async def create_runway_video(
    payload: RunwayVideoRequest,
    service: VideoService = Depends(get_video_service),
) -> RunwayVideoResponse:
    return await service.create_runway_video(payload)
