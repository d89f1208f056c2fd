# repository/job_repository.py
import logging
from datetime import datetime, timezone
from typing import Any, Generic, Optional, Type, TypeVar
from uuid import uuid4
from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.video import StabilityTask, VideoTask
from repository.namespaces import STABILITY_TASKS, VIDEO_TASKS
from util.enums import VideoTheme

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _RecordRepository(Generic[M]):
    """
    One JSON document per job id, TTL refreshed on every write and read.
    Records are replaced wholesale; `update` is read-modify-write.
    """

    prefix: str = ""
    model: Type[M]

    def __init__(self, ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    def _key(self, job_id: str) -> str:
        return f"{self.prefix}:{job_id}"

    async def put(self, record: M) -> None:
        r = await self._client()
        payload = record.model_dump_json(exclude_none=True).encode("utf-8")
        await r.set(self._key(record.id), payload, ex=self._ttl)  # type: ignore[attr-defined]

    async def get(self, job_id: str) -> Optional[M]:
        if not job_id:
            return None
        r = await self._client()
        raw = await r.get(self._key(job_id))
        if raw is None:
            return None
        try:
            obj = self.model.model_validate_json(raw)
        except ValidationError:
            # Unreadable records read as missing rather than breaking status lookups
            logger.error("job.record.invalid prefix=%s id=%s", self.prefix, job_id)
            return None
        await r.expire(self._key(job_id), self._ttl)
        return obj

    async def update(self, job_id: str, **changes: Any) -> Optional[M]:
        """
        Apply changes through model validation. A record that already reached
        a terminal state is returned unchanged.
        """
        current = await self.get(job_id)
        if current is None:
            return None
        if current.job_status().state.is_terminal:  # type: ignore[attr-defined]
            logger.info(
                "job.update.skipped prefix=%s id=%s status=%s",
                self.prefix,
                job_id,
                current.status,  # type: ignore[attr-defined]
            )
            return current
        updated = self.model.model_validate({**current.model_dump(), **changes})
        await self.put(updated)
        return updated

    async def delete(self, job_id: str) -> int:
        if not job_id:
            return 0
        r = await self._client()
        return int(await r.delete(self._key(job_id)))


class JobRepository(_RecordRepository[VideoTask]):
    """Video generation tasks (Creatomate-backed)."""

    prefix = VIDEO_TASKS
    model = VideoTask

    async def create(self, theme: VideoTheme) -> VideoTask:
        task = VideoTask(
            id=f"task-{uuid4().hex}",
            status="pending",
            progress=0,
            theme=theme,
            createdAt=_now(),
        )
        await self.put(task)
        return task


class StabilityTaskRepository(_RecordRepository[StabilityTask]):
    prefix = STABILITY_TASKS
    model = StabilityTask

    async def create(self) -> StabilityTask:
        now = _now()
        task = StabilityTask(id=str(uuid4()), status="pending", createdAt=now, updatedAt=now)
        await self.put(task)
        return task

    async def update(self, job_id: str, **changes: Any) -> Optional[StabilityTask]:
        changes.setdefault("updatedAt", _now())
        return await super().update(job_id, **changes)
