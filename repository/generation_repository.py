# repository/generation_repository.py
import logging
from typing import Final, List, Optional
from pydantic import ValidationError
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.generation import (
    CodeUpdate,
    GenerationPhase,
    GenerationStatus,
    GenerationUpdates,
    ImagePreview,
)
from repository.namespaces import GENERATIONS

logger = logging.getLogger(__name__)

KEY_PREFIX: Final[str] = GENERATIONS
CODE_KINDS: Final[tuple[str, ...]] = ("html", "css", "js", "json")


class GenerationRepository:
    """
    Flow:
    - generation:{id}               -> latest GenerationStatus (JSON)
    - generation:{id}:status        -> RPUSH list of human-readable status lines
    - generation:{id}:thinking      -> RPUSH list; the last entry is the most complete
    - generation:{id}:code:{kind}   -> RPUSH list per html/css/js/json; last wins
    - generation:{id}:images        -> RPUSH list of ImagePreview JSON
    Every write refreshes the TTL of the key it touched.
    """

    def __init__(self, ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(generation_id: str, *parts: str) -> str:
        return ":".join((KEY_PREFIX, generation_id, *parts))

    async def _push(self, key: str, value: str) -> None:
        r = await self._client()
        await r.rpush(key, value.encode("utf-8"))
        await r.expire(key, self._ttl)

    async def _all(self, key: str) -> List[str]:
        r = await self._client()
        vals = await r.lrange(key, 0, -1)
        return [v.decode("utf-8") if isinstance(v, bytes) else str(v) for v in vals or []]

    # ---------------- Status record ----------------

    async def set_status(
        self,
        generation_id: str,
        status: GenerationPhase,
        *,
        result: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> None:
        record = GenerationStatus(status=status, result=result, error=error)
        r = await self._client()
        await r.set(
            self._key(generation_id),
            record.model_dump_json(exclude_none=True).encode("utf-8"),
            ex=self._ttl,
        )

    async def get_status(self, generation_id: str) -> Optional[GenerationStatus]:
        r = await self._client()
        raw = await r.get(self._key(generation_id))
        if raw is None:
            return None
        try:
            return GenerationStatus.model_validate_json(raw)
        except ValidationError:
            logger.error("generation.status.invalid id=%s", generation_id)
            return GenerationStatus(status="failed", error="Invalid status format stored.")

    # ---------------- Incremental updates ----------------

    async def push_status(self, generation_id: str, message: str) -> None:
        await self._push(self._key(generation_id, "status"), message)

    async def push_thinking(self, generation_id: str, thinking: str) -> None:
        await self._push(self._key(generation_id, "thinking"), thinking)

    async def push_code(self, generation_id: str, kind: str, code: str) -> None:
        if kind not in CODE_KINDS:
            raise ValueError(f"unknown code kind: {kind}")
        await self._push(self._key(generation_id, "code", kind), code)

    async def push_image(self, generation_id: str, preview: ImagePreview) -> None:
        await self._push(self._key(generation_id, "images"), preview.model_dump_json())

    async def updates(self, generation_id: str) -> GenerationUpdates:
        status_messages = await self._all(self._key(generation_id, "status"))
        thinking = await self._all(self._key(generation_id, "thinking"))

        latest = {}
        for kind in CODE_KINDS:
            values = await self._all(self._key(generation_id, "code", kind))
            if values:
                latest[kind] = values[-1]

        previews: List[ImagePreview] = []
        for raw in await self._all(self._key(generation_id, "images")):
            try:
                previews.append(ImagePreview.model_validate_json(raw))
            except ValidationError:
                # Skip malformed entries instead of breaking the poll
                logger.warning("generation.image.invalid id=%s", generation_id)
                continue

        record = await self.get_status(generation_id)
        failed = record is not None and record.status == "failed"
        return GenerationUpdates(
            statusMessages=status_messages,
            thinking=thinking[-1] if thinking else None,
            codeUpdates=CodeUpdate.model_validate(latest),
            imagePreviewsUrls=previews,
            isComplete=record is not None and record.status == "completed",
            error=(record.error or "Website generation failed") if failed else None,
        )
