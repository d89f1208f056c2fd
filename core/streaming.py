# core/streaming.py
import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Final, Optional
from core.job_tracker import GenerationUpdatesTracker, JobTracker, RawCheck, VideoGenerationTracker
from core.reconciler import GenerationUpdatesState, VideoGenerationState
from core.polling import StatusPoller
from model.api import WatchEvent, WatchEventType
from util.constants import VIDEO_GENERATION, WEBSITE_GENERATION, PollProfile

LINE_SEP: Final[str] = "\n"
logger = logging.getLogger(__name__)

_DONE = object()


def ndjson_line(kind: WatchEventType, payload: Dict[str, Any]) -> bytes:
    event = WatchEvent(type=kind, payload=payload)
    return (event.model_dump_json() + LINE_SEP).encode("utf-8")


def video_payload(state: VideoGenerationState) -> Dict[str, Any]:
    return {
        "isGeneratingVideo": state.is_generating_video,
        "videoProgress": state.video_progress,
        "videoUrl": state.video_url,
        "videoError": state.video_error,
        "generationId": state.generation_id,
    }


def generation_payload(state: GenerationUpdatesState) -> Dict[str, Any]:
    previews = [
        p.model_dump() if hasattr(p, "model_dump") else dict(p) for p in state.image_previews
    ]
    return {
        "statusMessages": list(state.status_messages),
        "thinking": state.thinking,
        "codeUpdates": dict(state.code_updates),
        "imagePreviewsUrls": previews,
        "isComplete": state.is_complete,
        "error": state.error,
    }


async def stream_tracker(
    tracker: JobTracker,
    queue: "asyncio.Queue[Any]",
    start: Callable[[], Awaitable[None]],
    render: Callable[[Any], Dict[str, Any]],
    error_of: Callable[[], Optional[str]],
) -> AsyncIterator[bytes]:
    """
    Drive a tracker and emit NDJSON events:
      - one "state" line per reconciled change
      - an "error" line if the job failed or timed out
      - a final "done" line
    The tracker is cleaned up when the stream ends or the client goes away.
    """
    waiter: Optional[asyncio.Task] = None
    try:
        await start()

        async def _finish() -> None:
            try:
                await tracker.wait()
            finally:
                queue.put_nowait(_DONE)

        waiter = asyncio.create_task(_finish())
        while True:
            item = await queue.get()
            if item is _DONE:
                break
            yield ndjson_line("state", render(item))

        message = error_of()
        if message:
            yield ndjson_line("error", {"message": message})
        yield ndjson_line("done", render(tracker.state))
    finally:
        if waiter is not None and not waiter.done():
            waiter.cancel()
        await tracker.cleanup()
        logger.debug("stream.closed tracker=%s", type(tracker).__name__)


def watch_video(
    generation_id: str,
    check: RawCheck,
    *,
    profile: PollProfile = VIDEO_GENERATION,
    poller: Optional[StatusPoller] = None,
) -> AsyncIterator[bytes]:
    queue: "asyncio.Queue[Any]" = asyncio.Queue()
    tracker = VideoGenerationTracker(
        None, check, profile=profile, poller=poller, on_change=queue.put_nowait
    )
    logger.info("stream.video.watch id=%s", generation_id)
    return stream_tracker(
        tracker,
        queue,
        lambda: tracker.follow(generation_id),
        video_payload,
        lambda: tracker.state.video_error,
    )


def watch_generation(
    generation_id: str,
    check: RawCheck,
    *,
    profile: PollProfile = WEBSITE_GENERATION,
    poller: Optional[StatusPoller] = None,
) -> AsyncIterator[bytes]:
    queue: "asyncio.Queue[Any]" = asyncio.Queue()
    tracker = GenerationUpdatesTracker(
        check, profile=profile, poller=poller, on_change=queue.put_nowait
    )
    logger.info("stream.generation.watch id=%s", generation_id)
    return stream_tracker(
        tracker,
        queue,
        lambda: tracker.follow(generation_id),
        generation_payload,
        lambda: tracker.error,
    )
