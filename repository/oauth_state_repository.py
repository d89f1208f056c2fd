# repository/oauth_state_repository.py
from typing import Optional
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from repository.namespaces import OAUTH_STATES
from util.enums import Platform


class OAuthStateRepository:
    """
    Binds an OAuth `state` to the user who started the flow.
    The platform redirect carries no session, so the callback recovers the user here.
    Entries are single-use: pop() deletes what it reads.
    """

    def __init__(self, ttl_seconds: int = settings.OAUTH_STATE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(platform: Platform, state: str) -> str:
        return f"{OAUTH_STATES}:{platform.value}:{state}"

    async def bind(self, platform: Platform, state: str, user_id: str) -> None:
        r = await self._client()
        await r.set(self._key(platform, state), user_id.encode("utf-8"), ex=self._ttl)

    async def pop(self, platform: Platform, state: str) -> Optional[str]:
        if not state:
            return None
        r = await self._client()
        raw = await r.getdel(self._key(platform, state))
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
