import asyncio
from typing import Any, Awaitable, Callable, Dict, List

import fakeredis
import httpx
import pytest
import pytest_asyncio

from config import cache
from config.settings import settings
from core.background import BackgroundTasks

PROVIDER_KEYS = {
    "TIKTOK_API_KEY": "tiktok-client-key",
    "TIKTOK_API_SECRET": "tiktok-secret",
    "INSTAGRAM_APP_ID": "ig-app",
    "INSTAGRAM_APP_SECRET": "ig-secret",
    "CREATOMATE_API_KEY": "creatomate-key",
    "RUNWAY_API_KEY": "runway-key",
    "STABILITY_API_KEY": "stability-key",
    "PEXELS_API_KEY": "pexels-key",
    "GEMINI_API_KEY": "gemini-key",
    "OPENAI_API_KEY": "openai-key",
    "SUPABASE_URL": "https://db.example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role",
    "APP_HOST": "https://studio.example.com",
}


@pytest_asyncio.fixture
async def redis():
    """Shared fakeredis client installed where repositories look for Redis."""
    client = fakeredis.FakeAsyncRedis()
    cache.use_redis(client)
    try:
        yield client
    finally:
        cache.use_redis(None)
        await client.aclose()


@pytest.fixture
def provider_keys(monkeypatch: pytest.MonkeyPatch) -> Dict[str, str]:
    for name, value in PROVIDER_KEYS.items():
        monkeypatch.setattr(settings, name, value)
    return PROVIDER_KEYS


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], Callable[[], httpx.AsyncClient]]:
    """Turn a request handler into a ClientFactory backed by httpx.MockTransport."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> Callable[[], httpx.AsyncClient]:
        transport = httpx.MockTransport(handler)
        return lambda: httpx.AsyncClient(transport=transport)

    return _factory


class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays and only yields to the loop."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def runner():
    tasks = BackgroundTasks()
    try:
        yield tasks
    finally:
        await tasks.shutdown()


async def drain(runner: BackgroundTasks) -> None:
    """Wait for every background job the runner currently holds."""
    while len(runner):
        await asyncio.gather(*list(runner._tasks), return_exceptions=True)


@pytest.fixture
def wait_background() -> Callable[[BackgroundTasks], Awaitable[None]]:
    return drain


class Sequenced:
    """Status check that returns canned payloads in order (last one repeats)."""

    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.calls: List[str] = []

    async def __call__(self, job_id: str) -> Any:
        self.calls.append(job_id)
        index = min(len(self.calls) - 1, len(self._responses) - 1)
        item = self._responses[index]
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def sequenced() -> Callable[..., Sequenced]:
    return Sequenced
