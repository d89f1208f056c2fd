# controller/controller_dependencies.py
from typing import Optional
from fastapi import Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from core.supabase_client import SupabaseClient
from repository.cart_repository import CartRepository
from repository.generation_repository import GenerationRepository
from repository.job_repository import JobRepository, StabilityTaskRepository
from repository.oauth_state_repository import OAuthStateRepository
from repository.token_repository import TokenRepository
from service.assistant_service import AssistantService
from service.media_service import MediaService
from service.social_account_service import SocialAccountService
from service.social_share_service import SocialShareService
from service.storage_service import StorageService
from service.video_service import VideoService
from service.website_generation_service import WebsiteGenerationService
from util.enums import ErrorMessage
from util.errors import AuthenticationError

ACCESS_TOKEN_COOKIE = "sb-access-token"

_limiter = RateLimiter(times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS)


async def rate_limit(request: Request, response: Response) -> None:
    # Limiter is initialised in the app lifespan; bare TestClient apps run without it
    if FastAPILimiter.redis is None:
        return
    await _limiter(request, response)


def _access_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user_id(request: Request) -> str:
    token = _access_token(request)
    if not token:
        raise AuthenticationError(ErrorMessage.NOT_AUTHENTICATED.value.message)
    return await SupabaseClient().get_user_id(token)


def get_storage_service() -> StorageService:
    return StorageService()


def get_video_service() -> VideoService:
    _tasks = JobRepository()
    _stability = StabilityTaskRepository()
    _service = VideoService(_tasks, _stability, get_storage_service())
    return _service


def get_social_account_service() -> SocialAccountService:
    return SocialAccountService(TokenRepository())


def get_social_share_service() -> SocialShareService:
    _tokens = TokenRepository()
    _states = OAuthStateRepository()
    _accounts = SocialAccountService(_tokens)
    _service = SocialShareService(_tokens, _states, _accounts, get_storage_service())
    return _service


def get_website_generation_service() -> WebsiteGenerationService:
    return WebsiteGenerationService(GenerationRepository())


def get_assistant_service() -> AssistantService:
    return AssistantService(CartRepository())


def get_media_service() -> MediaService:
    return MediaService()
