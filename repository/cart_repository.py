# repository/cart_repository.py
import logging
from typing import Callable, List
from pydantic import TypeAdapter
from redis.asyncio import Redis
from redis.exceptions import WatchError
from config.cache import get_redis
from config.settings import settings
from model.assistant import CartItem
from repository.namespaces import CARTS

logger = logging.getLogger(__name__)

_ITEMS = TypeAdapter(List[CartItem])

CartChange = Callable[[List[CartItem]], List[CartItem]]


class CartRepository:
    """
    Per-session cart, stored as one JSON array. TTL refreshed on load and update.
    update() is an optimistic WATCH/MULTI transaction, so two concurrent
    changes to the same cart are applied one after the other.
    """

    def __init__(self, ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{CARTS}:{session_id}"

    async def load(self, session_id: str) -> List[CartItem]:
        r = await self._client()
        raw = await r.get(self._key(session_id))
        if raw is None:
            return []
        await r.expire(self._key(session_id), self._ttl)
        return _ITEMS.validate_json(raw)

    async def update(self, session_id: str, change: CartChange) -> List[CartItem]:
        r = await self._client()
        key = self._key(session_id)
        async with r.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    items = _ITEMS.validate_json(raw) if raw is not None else []
                    updated = change(items)
                    pipe.multi()
                    pipe.set(key, _ITEMS.dump_json(updated), ex=self._ttl)
                    await pipe.execute()
                    return updated
                except WatchError:
                    # Someone else wrote the cart in between; re-read and retry
                    logger.debug("cart.update.retry session=%s", session_id)
                    continue

    async def clear(self, session_id: str) -> int:
        r = await self._client()
        return int(await r.delete(self._key(session_id)))
