"""Tests for job trackers and the cleanup hook."""

import asyncio

import pytest

from core.cleanup import CleanupHook
from core.job_tracker import GenerationUpdatesTracker, VideoGenerationTracker
from core.polling import StatusPoller
from model.video import Scene, VideoGenerationRequest, VideoGenerationStarted
from util.constants import PollProfile

FAST = PollProfile("test.fast", 10, 3)


def _request() -> VideoGenerationRequest:
    return VideoGenerationRequest(scenes=[Scene(imageUrl="https://img/1.png")])


async def _started(_: VideoGenerationRequest) -> VideoGenerationStarted:
    return VideoGenerationStarted(success=True, generationId="task-1")


class TestCleanupHook:
    @pytest.mark.asyncio
    async def test_release_runs_newest_first_once(self) -> None:
        order = []
        hook = CleanupHook("test")
        hook.register("a", lambda: order.append("a"))

        async def _b() -> None:
            order.append("b")

        hook.register("b", _b)
        await hook.release()
        await hook.release()

        assert order == ["b", "a"]
        assert hook.released
        assert hook.pending == 0

    @pytest.mark.asyncio
    async def test_failing_releaser_does_not_stop_others(self) -> None:
        order = []
        hook = CleanupHook("test")
        hook.register("ok", lambda: order.append("ok"))

        def _boom() -> None:
            raise RuntimeError("close failed")

        hook.register("boom", _boom)
        await hook.release()
        assert order == ["ok"]


class TestVideoGenerationTracker:
    @pytest.mark.asyncio
    async def test_render_timeout_reports_timed_out(self, no_sleep, sequenced) -> None:
        check = sequenced({"success": True, "status": "processing", "progress": 30})
        tracker = VideoGenerationTracker(
            _started,
            check,
            profile=FAST,
            poller=StatusPoller(
                sleep=no_sleep,
                timeout_message="Video generation timed out after multiple attempts",
            ),
        )

        await tracker.start_video_generation(_request())
        state = await tracker.wait()

        assert state.is_generating_video is False
        assert "timed out" in (state.video_error or "")
        assert state.video_progress == 30
        assert len(check.calls) == FAST.max_attempts

    @pytest.mark.asyncio
    async def test_completes_with_url(self, no_sleep, sequenced) -> None:
        check = sequenced(
            {"success": True, "status": "processing", "progress": 50},
            {"success": True, "status": "completed", "progress": 100, "videoUrl": "https://cdn/v.mp4"},
        )
        changes = []
        tracker = VideoGenerationTracker(
            _started,
            check,
            profile=FAST,
            poller=StatusPoller(sleep=no_sleep),
            on_change=changes.append,
        )

        await tracker.start_video_generation(_request())
        state = await tracker.wait()

        assert state.video_url == "https://cdn/v.mp4"
        assert state.video_progress == 100
        assert state.generation_id == "task-1"
        assert changes[0].is_generating_video is True

    @pytest.mark.asyncio
    async def test_submit_failure_surfaces_error(self, sequenced) -> None:
        async def _rejected(_: VideoGenerationRequest) -> VideoGenerationStarted:
            return VideoGenerationStarted(success=False, error="No scenes provided")

        tracker = VideoGenerationTracker(_rejected, sequenced({}), profile=FAST)
        await tracker.start_video_generation(_request())

        assert tracker.state.video_error == "No scenes provided"
        assert tracker.state.is_generating_video is False
        assert not tracker.active

    @pytest.mark.asyncio
    async def test_cleanup_is_idempotent(self) -> None:
        gate = asyncio.Event()

        async def _slow_check(job_id: str) -> dict:
            await gate.wait()
            return {"success": True, "status": "processing"}

        tracker = VideoGenerationTracker(_started, _slow_check, profile=FAST)
        await tracker.start_video_generation(_request())
        await asyncio.sleep(0)
        assert tracker.active

        await tracker.cleanup()
        await tracker.cleanup()
        assert not tracker.active

    @pytest.mark.asyncio
    async def test_updates_after_cleanup_are_dropped(self, no_sleep) -> None:
        release = asyncio.Event()

        async def _check(job_id: str) -> dict:
            await release.wait()
            return {"success": True, "status": "completed", "videoUrl": "late"}

        tracker = VideoGenerationTracker(
            _started, _check, profile=FAST, poller=StatusPoller(sleep=no_sleep)
        )
        await tracker.start_video_generation(_request())
        await tracker.reset_video_state()
        release.set()
        await asyncio.sleep(0)

        assert tracker.state.video_url is None
        assert tracker.state.is_generating_video is False

    @pytest.mark.asyncio
    async def test_follow_requires_no_submit(self, no_sleep, sequenced) -> None:
        check = sequenced({"success": True, "status": "completed", "videoUrl": "u"})
        tracker = VideoGenerationTracker(
            None, check, profile=FAST, poller=StatusPoller(sleep=no_sleep)
        )
        await tracker.follow("task-9")
        state = await tracker.wait()
        assert check.calls == ["task-9"]
        assert state.video_url == "u"


class TestGenerationUpdatesTracker:
    @pytest.mark.asyncio
    async def test_merges_until_complete(self, no_sleep, sequenced) -> None:
        check = sequenced(
            {"statusMessages": ["Generation process initiated."], "isComplete": False},
            {
                "statusMessages": ["Generation process initiated.", "Website plan ready."],
                "codeUpdates": {"html": "<main/>"},
                "isComplete": True,
            },
        )
        tracker = GenerationUpdatesTracker(check, profile=FAST, poller=StatusPoller(sleep=no_sleep))
        await tracker.follow("gen-1")
        state = await tracker.wait()

        assert state.is_complete
        assert state.status_messages == ("Generation process initiated.", "Website plan ready.")
        assert state.code_updates["html"] == "<main/>"
        assert tracker.error is None

    @pytest.mark.asyncio
    async def test_timeout_sets_error(self, no_sleep, sequenced) -> None:
        tracker = GenerationUpdatesTracker(
            sequenced({"isComplete": False}),
            profile=FAST,
            poller=StatusPoller(sleep=no_sleep, timeout_message="Website generation timed out"),
        )
        await tracker.follow("gen-2")
        await tracker.wait()
        assert tracker.error == "Website generation timed out"
