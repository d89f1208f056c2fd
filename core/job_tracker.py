# core/job_tracker.py
import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, TypeVar
from core.cleanup import CleanupHook
from core.polling import OutcomeMapper, PollOutcome, StatusPoller, Succeeded
from core.reconciler import (
    GenerationUpdatesState,
    VideoGenerationState,
    apply_generation_updates,
    apply_video_outcome,
    map_generation_updates,
    map_video_task,
)
from model.job import Job, JobKind
from model.video import VideoGenerationRequest, VideoGenerationStarted
from util.constants import VIDEO_GENERATION, WEBSITE_GENERATION, PollProfile
from util.errors import AppError

logger = logging.getLogger(__name__)

S = TypeVar("S")
RawCheck = Callable[[str], Awaitable[Mapping[str, Any]]]


class JobTracker(Generic[S]):
    """
    Owns one polling task plus the state it reconciles into.

    Every update is tagged with the job id it belongs to; once cleanup() ran
    or another job replaced it, late updates are dropped.
    """

    def __init__(
        self,
        initial: S,
        *,
        poller: Optional[StatusPoller] = None,
        on_change: Optional[Callable[[S], None]] = None,
        name: str = "job-tracker",
    ) -> None:
        self._initial = initial
        self._state = initial
        self._poller = poller or StatusPoller()
        self._on_change = on_change
        self._cleanup = CleanupHook(name)
        self._job_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._name = name

    @property
    def state(self) -> S:
        return self._state

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait(self) -> S:
        if self._task is not None:
            await asyncio.shield(self._task)
        return self._state

    async def cleanup(self) -> None:
        """Stop polling and drop every reference. Safe to call repeatedly."""
        self._job_id = None
        await self._cleanup.release()
        self._task = None

    # ---------------- internals ----------------

    def _set(self, job_id: Optional[str], state: S) -> None:
        if job_id is not None and job_id != self._job_id:
            logger.debug("%s.stale_update job=%s current=%s", self._name, job_id, self._job_id)
            return
        self._state = state
        if self._on_change is not None:
            self._on_change(state)

    def _track(self, job: Job, check: RawCheck, mapper: OutcomeMapper) -> None:
        self._job_id = job.id

        async def _checked(job_id: str) -> Mapping[str, Any]:
            raw = await check(job_id)
            self._on_raw(job_id, raw)
            return raw

        async def _run() -> None:
            try:
                outcome = await self._poller.run(
                    job,
                    _checked,
                    mapper,
                    on_update=lambda pending: self._on_outcome(job.id, pending),
                )
                self._on_outcome(job.id, outcome)
            except asyncio.CancelledError:
                logger.debug("%s.cancelled job=%s", self._name, job.id)
                raise
            except AppError as e:
                self._on_error(job.id, e.message)
            except Exception as e:
                logger.exception("%s.error job=%s", self._name, job.id)
                self._on_error(job.id, str(e) or "Unknown error occurred")

        task = asyncio.create_task(_run(), name=f"{self._name}:{job.id}")
        self._task = task
        self._cleanup.register("poll-task", lambda: _cancel_task(task))

    def _on_raw(self, job_id: str, raw: Mapping[str, Any]) -> None:
        pass

    def _on_outcome(self, job_id: str, outcome: PollOutcome) -> None:
        raise NotImplementedError

    def _on_error(self, job_id: str, message: str) -> None:
        raise NotImplementedError


async def _cancel_task(task: asyncio.Task) -> None:
    if task.done():
        return
    task.cancel()
    if task is asyncio.current_task():
        return
    try:
        await task
    except asyncio.CancelledError:
        pass


class VideoGenerationTracker(JobTracker[VideoGenerationState]):
    """
    Starts a video generation and follows it until done, failed or timed out.
    `submit` starts the job, `check` returns the status payload for a generation id.
    """

    def __init__(
        self,
        submit: Optional[Callable[[VideoGenerationRequest], Awaitable[VideoGenerationStarted]]],
        check: RawCheck,
        *,
        profile: PollProfile = VIDEO_GENERATION,
        poller: Optional[StatusPoller] = None,
        on_change: Optional[Callable[[VideoGenerationState], None]] = None,
    ) -> None:
        super().__init__(
            VideoGenerationState(),
            poller=poller
            or StatusPoller(
                failure_message="Video generation failed",
                timeout_message="Video generation timed out after multiple attempts",
            ),
            on_change=on_change,
            name="video-tracker",
        )
        self._submit = submit
        self._check = check
        self._profile = profile

    async def start_video_generation(self, request: VideoGenerationRequest) -> None:
        if self._submit is None:
            raise RuntimeError("video-tracker has no submit callable; use follow()")
        await self.cleanup()
        self._set(None, VideoGenerationState(is_generating_video=True))
        try:
            started = await self._submit(request)
        except AppError as e:
            self._set(None, replace(self._state, is_generating_video=False, video_error=e.message))
            return
        except Exception as e:
            logger.exception("video-tracker.submit.error")
            self._set(
                None,
                replace(
                    self._state,
                    is_generating_video=False,
                    video_error=str(e) or "Unknown error occurred",
                ),
            )
            return

        if not started.success or not started.generationId:
            self._set(
                None,
                replace(
                    self._state,
                    is_generating_video=False,
                    video_error=started.error or "Failed to start video generation",
                ),
            )
            return

        self._follow(started.generationId)

    async def follow(self, generation_id: str) -> None:
        """Track a generation someone else already started."""
        await self.cleanup()
        self._set(None, VideoGenerationState(is_generating_video=True))
        self._follow(generation_id)

    def _follow(self, generation_id: str) -> None:
        job = Job.from_profile(generation_id, JobKind.video_render, self._profile)
        self._set(None, replace(self._state, generation_id=job.id))
        self._track(job, self._check, map_video_task)

    async def reset_video_state(self) -> None:
        await self.cleanup()
        self._set(None, VideoGenerationState())

    def _on_outcome(self, job_id: str, outcome: PollOutcome) -> None:
        self._set(job_id, apply_video_outcome(self._state, outcome))

    def _on_error(self, job_id: str, message: str) -> None:
        self._set(job_id, replace(self._state, is_generating_video=False, video_error=message))


class GenerationUpdatesTracker(JobTracker[GenerationUpdatesState]):
    """
    Follows a website generation, merging each updates payload into the
    accumulated state (status messages, thinking, code, image previews).
    """

    def __init__(
        self,
        check: RawCheck,
        *,
        profile: PollProfile = WEBSITE_GENERATION,
        poller: Optional[StatusPoller] = None,
        on_change: Optional[Callable[[GenerationUpdatesState], None]] = None,
    ) -> None:
        super().__init__(
            GenerationUpdatesState(),
            poller=poller
            or StatusPoller(
                failure_message="Website generation failed",
                timeout_message="Website generation timed out",
            ),
            on_change=on_change,
            name="generation-tracker",
        )
        self._check = check
        self._profile = profile
        self.error: Optional[str] = None

    async def follow(self, generation_id: str) -> None:
        await self.cleanup()
        self.error = None
        self._set(None, GenerationUpdatesState())
        job = Job.from_profile(generation_id, JobKind.website_generation, self._profile)
        self._track(job, self._check, map_generation_updates)

    def _on_raw(self, job_id: str, raw: Mapping[str, Any]) -> None:
        self._set(job_id, apply_generation_updates(self._state, raw))

    def _on_outcome(self, job_id: str, outcome: PollOutcome) -> None:
        if isinstance(outcome, Succeeded):
            self._set(job_id, replace(self._state, is_complete=True))

    def _on_error(self, job_id: str, message: str) -> None:
        if job_id != self._job_id:
            return
        self.error = message
        self._set(job_id, self._state)
