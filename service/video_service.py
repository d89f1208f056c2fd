# service/video_service.py
import asyncio
import base64
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from config.settings import settings
from core.background import BackgroundTasks, background
from core.creatomate_client import (
    CreatomateClient,
    carousel_modifications,
    cinematic_modifications,
    dimensions,
    showcase_modifications,
)
from core.http import ClientFactory, default_client_factory, fetch_bytes
from core.polling import Pending, Sleep, StatusPoller
from core.reconciler import map_creatomate, map_runway, map_stability
from core.runway_client import RunwayClient
from core.stability_client import StabilityClient
from model.job import Job, JobKind
from model.video import (
    CinematicData,
    RunwayVideoRequest,
    RunwayVideoResponse,
    StabilityVideoRequest,
    StabilityVideoResponse,
    VideoGenerationRequest,
    VideoGenerationStarted,
    VideoStatusResponse,
)
from repository.job_repository import JobRepository, StabilityTaskRepository
from service.storage_service import StorageService, decode_data_uri, is_remote_url
from util.constants import (
    CREATOMATE_RENDER,
    PRODUCT_CAROUSEL_TEMPLATE_ID,
    PRODUCT_SHOWCASE_TEMPLATE_ID,
    RUNWAY_VIDEO,
    STABILITY_VIDEO,
)
from util.enums import ErrorMessage, VideoTheme
from util.errors import AppError

logger = logging.getLogger(__name__)

# Progress recorded once the render is accepted, before the first status check
SUBMITTED_PROGRESS = 30


class VideoService:
    """
    Video generation jobs.

    Flow (Creatomate):
      - generate_video() stores a task and returns its id at once
      - a background job uploads inline images, submits the render and polls it,
        reconciling every status into the stored task
      - get_video_status() only reads the stored task
    """

    def __init__(
        self,
        tasks: JobRepository,
        stability_tasks: StabilityTaskRepository,
        storage: StorageService,
        creatomate: Optional[CreatomateClient] = None,
        stability: Optional[StabilityClient] = None,
        runway: Optional[RunwayClient] = None,
        http: Optional[ClientFactory] = None,
        runner: BackgroundTasks = background,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._tasks = tasks
        self._stability_tasks = stability_tasks
        self._storage = storage
        self._creatomate = creatomate or CreatomateClient()
        self._stability = stability or StabilityClient()
        self._runway = runway or RunwayClient()
        self._http = http or default_client_factory
        self._runner = runner
        self._sleep = sleep

    # ---------------- Creatomate ----------------

    async def generate_video(self, request: VideoGenerationRequest) -> VideoGenerationStarted:
        if not request.scenes:
            return VideoGenerationStarted(success=False, error="No scenes provided")
        task = await self._tasks.create(request.theme)
        logger.info(
            "video.generate task=%s theme=%s scenes=%d",
            task.id,
            request.theme.value,
            len(request.scenes),
        )
        self._runner.spawn(self._run_generation(task.id, request), name=f"video:{task.id}")
        return VideoGenerationStarted(success=True, generationId=task.id)

    async def get_video_status(self, generation_id: str) -> VideoStatusResponse:
        task = await self._tasks.get(generation_id)
        if task is None:
            return VideoStatusResponse(
                success=False, error=ErrorMessage.TASK_NOT_FOUND.value.message
            )
        return VideoStatusResponse(
            success=True,
            status=task.status,
            progress=task.progress,
            videoUrl=task.videoUrl,
            error=task.error,
        )

    async def _run_generation(self, task_id: str, request: VideoGenerationRequest) -> None:
        await self._tasks.update(task_id, status="processing", progress=10)
        try:
            template_id, modifications = await self._render_payload(request)
            submission = await self._creatomate.render_template(template_id, modifications)
            await self._tasks.update(
                task_id, renderId=submission.renderId, progress=SUBMITTED_PROGRESS
            )

            if submission.status == "succeeded" and submission.url:
                await self._complete(task_id, submission.url)
                return

            poller = StatusPoller(
                sleep=self._sleep,
                failure_message="Rendering failed",
                timeout_message="Video rendering timed out",
            )
            job = Job.from_profile(submission.renderId, JobKind.video_render, CREATOMATE_RENDER)

            async def _progress(pending: Pending) -> None:
                await self._tasks.update(
                    task_id,
                    progress=pending.progress or SUBMITTED_PROGRESS,
                    lastChecked=datetime.now(timezone.utc),
                )

            outcome = await poller.run(
                job, self._creatomate.get_render, map_creatomate, on_update=_progress
            )
            await self._complete(task_id, outcome.result)
        except AppError as e:
            logger.warning("video.generate.failed task=%s err=%s", task_id, e.message)
            await self._tasks.update(task_id, status="failed", error=e.message)
        except ValueError as e:
            await self._tasks.update(task_id, status="failed", error=str(e))
        except Exception as e:
            logger.exception("video.generate.error task=%s", task_id)
            await self._tasks.update(
                task_id, status="failed", error=str(e) or "Unknown error"
            )

    async def _complete(self, task_id: str, url: Optional[str]) -> None:
        await self._tasks.update(
            task_id,
            status="completed",
            progress=100,
            videoUrl=url,
            lastChecked=datetime.now(timezone.utc),
        )
        logger.info("video.generate.completed task=%s", task_id)

    async def _render_payload(self, request: VideoGenerationRequest) -> tuple[str, Dict[str, Any]]:
        """Pick the template for the theme and build its modifications."""
        scenes = request.scenes
        theme = request.theme

        if theme == VideoTheme.PRODUCT_SHOWCASE and request.productData is not None:
            image = await self._storage.ensure_public_url(scenes[0].imageUrl, "product-image.png")
            logo = None
            if request.productData.logoUrl:
                logo = await self._storage.ensure_public_url(request.productData.logoUrl, "logo.png")
            mods = showcase_modifications(image, request.productData, logo)
            if request.aspectRatio:
                mods.update(dimensions(request.aspectRatio))
            return PRODUCT_SHOWCASE_TEMPLATE_ID, mods

        if theme == VideoTheme.SOCIAL_REEL and len(scenes) >= 3:
            images = [
                await self._storage.ensure_public_url(s.imageUrl, f"product-image-{i + 1}.png")
                for i, s in enumerate(scenes[:3])
            ]
            mods = carousel_modifications(images, [s.caption for s in scenes[:3]])
            if request.aspectRatio:
                mods.update(dimensions(request.aspectRatio))
            return PRODUCT_CAROUSEL_TEMPLATE_ID, mods

        if theme == VideoTheme.CINEMATIC and any(s.isVideo for s in scenes):
            videos = [s.videoUrl for s in scenes if s.isVideo and s.videoUrl]
            picture = next((s.imageUrl for s in scenes if not s.isVideo), scenes[0].imageUrl)
            picture = await self._storage.ensure_public_url(picture, "profile-picture.png")
            mods = cinematic_modifications(videos, picture, request.cinematicData or CinematicData())
            return settings.require("CREATOMATE_CINEMATIC_TEMPLATE_ID"), mods

        raise ValueError("Invalid theme or insufficient scenes")

    # ---------------- Stability ----------------

    async def generate_stability_video(
        self, request: StabilityVideoRequest
    ) -> StabilityVideoResponse:
        task = await self._stability_tasks.create()
        logger.info("stability.generate task=%s", task.id)
        self._runner.spawn(self._run_stability(task.id, request), name=f"stability:{task.id}")
        return StabilityVideoResponse(id=task.id, status="pending")

    async def check_stability_status(self, generation_id: str) -> StabilityVideoResponse:
        task = await self._stability_tasks.get(generation_id)
        if task is None:
            return StabilityVideoResponse(
                id=generation_id,
                status="failed",
                error=ErrorMessage.GENERATION_NOT_FOUND.value.message,
            )
        return StabilityVideoResponse(
            id=task.id, status=task.status, videoUrl=task.videoUrl, error=task.error
        )

    async def _load_image(self, source: str) -> tuple[bytes, Optional[str]]:
        if source.startswith("data:"):
            mime, data = decode_data_uri(source)
            return data, mime
        if is_remote_url(source):
            return await fetch_bytes(self._http, source, provider="stability")
        return base64.b64decode(source), "image/png"

    async def _run_stability(self, task_id: str, request: StabilityVideoRequest) -> None:
        try:
            image, content_type = await self._load_image(request.image)
            stability_id = await self._stability.start_image_to_video(
                image,
                content_type,
                seed=request.seed,
                cfg_scale=request.cfgScale,
                motion_bucket_id=request.motionBucketId,
            )
            await self._stability_tasks.update(task_id, stabilityId=stability_id)

            poller = StatusPoller(
                sleep=self._sleep,
                failure_message="Generation failed at Stability API",
                timeout_message="Video generation timed out",
            )
            job = Job.from_profile(stability_id, JobKind.video_render, STABILITY_VIDEO)
            outcome = await poller.run(job, self._stability.get_result, map_stability)
            await self._stability_tasks.update(
                task_id, status="completed", videoUrl=outcome.result
            )
            logger.info("stability.generate.completed task=%s", task_id)
        except AppError as e:
            logger.warning("stability.generate.failed task=%s err=%s", task_id, e.message)
            await self._stability_tasks.update(task_id, status="failed", error=e.message)
        except Exception as e:
            logger.exception("stability.generate.error task=%s", task_id)
            await self._stability_tasks.update(
                task_id,
                status="failed",
                error=str(e) or "Unknown error during video generation process",
            )

    # ---------------- Runway ----------------

    async def create_runway_video(self, request: RunwayVideoRequest) -> RunwayVideoResponse:
        """Submit and wait for the result inside the request."""
        try:
            generation_id = await self._runway.create_video(request.prompt, request.image)
            poller = StatusPoller(
                sleep=self._sleep,
                timeout_message="Maximum polling attempts reached. Video generation timed out.",
            )
            job = Job.from_profile(generation_id, JobKind.video_render, RUNWAY_VIDEO)
            outcome = await poller.run(job, self._runway.get_video, map_runway)
            return RunwayVideoResponse(videoUrl=outcome.result)
        except AppError as e:
            logger.warning("runway.create.failed err=%s", e.message)
            return RunwayVideoResponse(error=e.message)
        except Exception as e:
            logger.exception("runway.create.error")
            return RunwayVideoResponse(error=str(e) or "Unknown error")
