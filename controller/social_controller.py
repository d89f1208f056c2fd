# controller/social_controller.py
import logging
from typing import List, Optional
from urllib.parse import quote
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from config.settings import settings
from controller.controller_dependencies import (
    get_current_user_id,
    get_social_account_service,
    get_social_share_service,
    rate_limit,
)
from model.api import OkResponse
from model.social import (
    InstagramShareOptions,
    OAuthStart,
    ShareResult,
    SocialAccountInfo,
    TikTokShareOptions,
)
from service.social_account_service import SocialAccountService
from service.social_share_service import SocialShareService
from util.constants import InternalURIs
from util.enums import Platform
from util.errors import AppError

logger = logging.getLogger(__name__)

TIKTOK_STATE_COOKIE = "tiktok_auth_state"
TIKTOK_VERIFIER_COOKIE = "tiktok_code_verifier"
INSTAGRAM_STATE_COOKIE = "instagram_auth_state"

social_router = APIRouter(tags=["social"], dependencies=[Depends(rate_limit)])


def _set_cookie(response: Response, name: str, value: str) -> None:
    response.set_cookie(
        name,
        value,
        max_age=settings.OAUTH_STATE_TTL_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def _landing(query: str) -> str:
    return f"{settings.APP_HOST.rstrip('/')}{InternalURIs.VIDEO_GENERATOR_PAGE}?{query}"


def _callback_redirect(query: str, *cookies: str) -> RedirectResponse:
    response = RedirectResponse(_landing(query), status_code=302)
    for name in cookies:
        response.delete_cookie(name)
    return response


def _auth_response(start: OAuthStart, response: Response) -> dict:
    _set_cookie(
        response,
        TIKTOK_STATE_COOKIE if start.code_verifier else INSTAGRAM_STATE_COOKIE,
        start.state,
    )
    if start.code_verifier:
        _set_cookie(response, TIKTOK_VERIFIER_COOKIE, start.code_verifier)
    return {"authUrl": start.auth_url}


# ---------------- TikTok ----------------


@social_router.post(InternalURIs.TIKTOK_AUTH)
async def initiate_tiktok_auth(
    response: Response,
    user_id: str = Depends(get_current_user_id),
    service: SocialShareService = Depends(get_social_share_service),
) -> dict:
    start = await service.initiate_tiktok_auth(user_id)
    return _auth_response(start, response)


@social_router.get(InternalURIs.TIKTOK_CALLBACK)
async def tiktok_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    service: SocialShareService = Depends(get_social_share_service),
) -> RedirectResponse:
    cookies = (TIKTOK_STATE_COOKIE, TIKTOK_VERIFIER_COOKIE)
    if not code or not state:
        return _callback_redirect("error=missing_params", *cookies)
    try:
        await service.handle_tiktok_callback(
            code,
            state,
            request.cookies.get(TIKTOK_STATE_COOKIE),
            request.cookies.get(TIKTOK_VERIFIER_COOKIE),
        )
    except AppError as e:
        logger.warning("oauth.tiktok.callback.failed err=%s", e.message)
        return _callback_redirect(f"error={quote(e.message)}", *cookies)
    return _callback_redirect(f"connected={Platform.TIKTOK.value}", *cookies)


# ---------------- Instagram ----------------


@social_router.post(InternalURIs.INSTAGRAM_AUTH)
async def initiate_instagram_auth(
    response: Response,
    user_id: str = Depends(get_current_user_id),
    service: SocialShareService = Depends(get_social_share_service),
) -> dict:
    start = await service.initiate_instagram_auth(user_id)
    return _auth_response(start, response)


@social_router.get(InternalURIs.INSTAGRAM_CALLBACK)
async def instagram_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    service: SocialShareService = Depends(get_social_share_service),
) -> RedirectResponse:
    if not code or not state:
        return _callback_redirect("error=missing_params", INSTAGRAM_STATE_COOKIE)
    try:
        await service.handle_instagram_callback(
            code, state, request.cookies.get(INSTAGRAM_STATE_COOKIE)
        )
    except AppError as e:
        logger.warning("oauth.instagram.callback.failed err=%s", e.message)
        return _callback_redirect(f"error={quote(e.message)}", INSTAGRAM_STATE_COOKIE)
    return _callback_redirect(f"connected={Platform.INSTAGRAM.value}", INSTAGRAM_STATE_COOKIE)


# ---------------- Sharing ----------------


@social_router.post(InternalURIs.SHARE_TIKTOK, response_model=ShareResult)
async def share_to_tiktok(
    payload: TikTokShareOptions,
    user_id: str = Depends(get_current_user_id),
    service: SocialShareService = Depends(get_social_share_service),
) -> ShareResult:
    return await service.share_to_tiktok(user_id, payload)


@social_router.post(InternalURIs.SHARE_INSTAGRAM, response_model=ShareResult)
async def share_to_instagram(
    payload: InstagramShareOptions,
    user_id: str = Depends(get_current_user_id),
    service: SocialShareService = Depends(get_social_share_service),
) -> ShareResult:
    return await service.share_to_instagram(user_id, payload)


# ---------------- Accounts ----------------


@social_router.get(InternalURIs.SOCIAL_ACCOUNTS, response_model=List[SocialAccountInfo])
async def get_social_accounts(
    user_id: str = Depends(get_current_user_id),
    service: SocialAccountService = Depends(get_social_account_service),
) -> List[SocialAccountInfo]:
    return await service.get_social_accounts(user_id)


@social_router.delete(InternalURIs.SOCIAL_ACCOUNT, response_model=OkResponse)
async def disconnect_social_account(
    platform: Platform,
    user_id: str = Depends(get_current_user_id),
    service: SocialAccountService = Depends(get_social_account_service),
) -> OkResponse:
    return OkResponse(ok=await service.disconnect(user_id, platform))
