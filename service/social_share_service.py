# service/social_share_service.py
import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from core.instagram_client import InstagramClient
from core.polling import Sleep, StatusPoller
from core.reconciler import map_instagram, map_tiktok
from core.tiktok_client import TikTokClient, make_code_verifier
from model.job import Job, JobKind
from model.social import (
    InstagramShareOptions,
    OAuthStart,
    ShareResult,
    SocialMediaToken,
    TikTokShareOptions,
)
from repository.oauth_state_repository import OAuthStateRepository
from repository.token_repository import TokenRepository
from service.social_account_service import SocialAccountService
from service.storage_service import StorageService
from util.constants import (
    INSTAGRAM_PUBLISH,
    INSTAGRAM_TOKEN_TTL_SECONDS,
    TIKTOK_PUBLISH,
    ExternalURIs,
)
from util.enums import ErrorMessage, Platform
from util.errors import AppError, AuthenticationError, ExternalApiError, JobFailedError

logger = logging.getLogger(__name__)


def _states_match(stored: Optional[str], received: Optional[str]) -> bool:
    if not stored or not received:
        return False
    return secrets.compare_digest(stored.encode("utf-8"), received.encode("utf-8"))


class SocialShareService:
    """
    OAuth connect flows and video publishing for TikTok and Instagram.

    Share calls never raise: every failure comes back as
    ShareResult(success=False, error=...).
    """

    def __init__(
        self,
        tokens: TokenRepository,
        oauth_states: OAuthStateRepository,
        accounts: SocialAccountService,
        storage: StorageService,
        tiktok: Optional[TikTokClient] = None,
        instagram: Optional[InstagramClient] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._tokens = tokens
        self._states = oauth_states
        self._accounts = accounts
        self._storage = storage
        self._tiktok = tiktok or TikTokClient()
        self._instagram = instagram or InstagramClient()
        self._sleep = sleep

    # ---------------- TikTok OAuth ----------------

    async def initiate_tiktok_auth(self, user_id: str) -> OAuthStart:
        state = secrets.token_hex(16)
        verifier = make_code_verifier()
        url = self._tiktok.authorize_url(state, verifier)
        await self._states.bind(Platform.TIKTOK, state, user_id)
        logger.info("oauth.tiktok.init")
        return OAuthStart(auth_url=url, state=state, code_verifier=verifier)

    async def handle_tiktok_callback(
        self,
        code: str,
        state: str,
        stored_state: Optional[str],
        code_verifier: Optional[str],
    ) -> str:
        """Returns the user id the new token was stored for."""
        if not _states_match(stored_state, state):
            logger.warning("oauth.tiktok.state_mismatch")
            raise AuthenticationError(ErrorMessage.INVALID_STATE.value.message)
        if not code_verifier:
            raise AuthenticationError(ErrorMessage.MISSING_VERIFIER.value.message)
        user_id = await self._states.pop(Platform.TIKTOK, state)
        if not user_id:
            raise AuthenticationError(ErrorMessage.INVALID_STATE.value.message)

        token = await self._tiktok.exchange_code(code, code_verifier)
        await self._tokens.store(
            user_id,
            Platform.TIKTOK,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=_expiry(token.expires_in),
            platform_user_id=token.open_id or "",
        )
        logger.info("oauth.tiktok.connected")
        return user_id

    # ---------------- Instagram OAuth ----------------

    async def initiate_instagram_auth(self, user_id: str) -> OAuthStart:
        state = secrets.token_hex(16)
        url = self._instagram.authorize_url(state)
        await self._states.bind(Platform.INSTAGRAM, state, user_id)
        logger.info("oauth.instagram.init")
        return OAuthStart(auth_url=url, state=state)

    async def handle_instagram_callback(
        self, code: str, state: str, stored_state: Optional[str]
    ) -> str:
        if not _states_match(stored_state, state):
            logger.warning("oauth.instagram.state_mismatch")
            raise AuthenticationError(ErrorMessage.INVALID_STATE.value.message)
        user_id = await self._states.pop(Platform.INSTAGRAM, state)
        if not user_id:
            raise AuthenticationError(ErrorMessage.INVALID_STATE.value.message)

        short_token = await self._instagram.exchange_code(code)
        long_token = await self._instagram.long_lived_token(short_token)
        page = await self._instagram.first_page(long_token)
        page_token = str(page.get("access_token") or "")
        ig_account_id = await self._instagram.business_account_id(str(page.get("id")), page_token)

        # Graph calls are made with the page token, not the user token
        await self._tokens.store(
            user_id,
            Platform.INSTAGRAM,
            access_token=page_token,
            expires_at=_expiry(INSTAGRAM_TOKEN_TTL_SECONDS),
            platform_user_id=ig_account_id,
        )
        logger.info("oauth.instagram.connected")
        return user_id

    # ---------------- Tokens ----------------

    async def _tiktok_token(self, user_id: str) -> SocialMediaToken:
        token = await self._tokens.get(user_id, Platform.TIKTOK)
        if token is None:
            raise AppError(
                ErrorMessage.TIKTOK_NOT_CONNECTED.value.message,
                ErrorMessage.TIKTOK_NOT_CONNECTED.value.http_status,
            )
        if not _expired(token.expires_at) or not token.refresh_token:
            return token

        logger.info("share.tiktok.token.refresh")
        try:
            fresh = await self._tiktok.refresh(token.refresh_token)
        except ExternalApiError:
            raise ExternalApiError("Failed to refresh TikTok token", provider="tiktok")
        open_id = fresh.open_id or token.platform_user_id
        expires_at = _expiry(fresh.expires_in)
        await self._tokens.store(
            user_id,
            Platform.TIKTOK,
            access_token=fresh.access_token,
            refresh_token=fresh.refresh_token or token.refresh_token,
            expires_at=expires_at,
            platform_user_id=open_id,
        )
        return token.model_copy(
            update={
                "access_token": fresh.access_token,
                "refresh_token": fresh.refresh_token or token.refresh_token,
                "expires_at": expires_at,
                "platform_user_id": open_id,
            }
        )

    async def _instagram_token(self, user_id: str) -> SocialMediaToken:
        # Long-lived (~60 days); no refresh flow
        token = await self._tokens.get(user_id, Platform.INSTAGRAM)
        if token is None:
            raise AppError(
                ErrorMessage.INSTAGRAM_NOT_CONNECTED.value.message,
                ErrorMessage.INSTAGRAM_NOT_CONNECTED.value.http_status,
            )
        return token

    # ---------------- Sharing ----------------

    async def share_to_tiktok(self, user_id: str, options: TikTokShareOptions) -> ShareResult:
        try:
            token = await self._tiktok_token(user_id)
            open_id = token.platform_user_id

            video_url = await self._storage.ensure_public_url(options.videoUrl, "tiktok-video.mp4")
            size = await self._tiktok.video_size(video_url)
            logger.info("share.tiktok.init publish=%s", "draft" if options.asDraft else "direct")
            publish_id = await self._tiktok.init_publish(
                token.access_token,
                video_url=video_url,
                video_size=size,
                caption=options.caption,
                as_draft=options.asDraft,
            )

            poller = StatusPoller(
                sleep=self._sleep,
                failure_message="Unknown error",
                timeout_message="TikTok video processing timed out",
            )
            job = Job.from_profile(publish_id, JobKind.social_publish, TIKTOK_PUBLISH)
            try:
                outcome = await poller.run(
                    job,
                    lambda pid: self._tiktok.fetch_publish_status(token.access_token, pid),
                    map_tiktok,
                )
            except JobFailedError as e:
                raise JobFailedError(f"TikTok publishing failed: {e.message}")

            item_id = (outcome.result or {}).get("item_id")
            result = ShareResult(
                success=True,
                postId=str(item_id or publish_id),
                postUrl=ExternalURIs.TIKTOK_VIDEO_URL.format(open_id=open_id, item_id=item_id)
                if item_id
                else None,
            )
            await self._accounts.update_usage(user_id, Platform.TIKTOK)
            logger.info("share.tiktok.ok post=%s", result.postId)
            return result
        except AppError as e:
            logger.warning("share.tiktok.failed err=%s", e.message)
            return ShareResult(success=False, error=e.message)
        except Exception as e:
            logger.exception("share.tiktok.error")
            return ShareResult(success=False, error=str(e) or "Failed to share to TikTok")

    async def share_to_instagram(
        self, user_id: str, options: InstagramShareOptions
    ) -> ShareResult:
        try:
            token = await self._instagram_token(user_id)
            ig_user_id = token.platform_user_id

            video_url = await self._storage.ensure_public_url(
                options.videoUrl, "instagram-video.mp4"
            )
            thumbnail_url = None
            if options.thumbnailUrl:
                thumbnail_url = await self._storage.ensure_public_url(
                    options.thumbnailUrl, "instagram-thumbnail.jpg"
                )

            container_id = await self._instagram.create_container(
                ig_user_id,
                token.access_token,
                video_url=video_url,
                caption=options.caption,
                as_reel=options.asReel,
                share_to_feed=options.shareToFeed,
                thumbnail_url=thumbnail_url,
            )

            poller = StatusPoller(
                sleep=self._sleep,
                failure_message="Unknown error",
                timeout_message="Instagram media processing timed out",
            )
            job = Job.from_profile(container_id, JobKind.social_publish, INSTAGRAM_PUBLISH)
            try:
                await poller.run(
                    job,
                    lambda cid: self._instagram.get_container_status(cid, token.access_token),
                    map_instagram,
                )
            except JobFailedError as e:
                raise JobFailedError(f"Instagram media processing failed: {e.message}")

            post_id = await self._instagram.publish_container(
                ig_user_id, token.access_token, container_id
            )
            username = await self._instagram.get_username(ig_user_id, token.access_token)
            result = ShareResult(
                success=True,
                postId=post_id,
                postUrl=ExternalURIs.INSTAGRAM_POST_URL.format(post_id=post_id)
                if username
                else None,
            )
            await self._accounts.update_usage(user_id, Platform.INSTAGRAM)
            logger.info("share.instagram.ok post=%s", post_id)
            return result
        except AppError as e:
            logger.warning("share.instagram.failed err=%s", e.message)
            return ShareResult(success=False, error=e.message)
        except Exception as e:
            logger.exception("share.instagram.error")
            return ShareResult(success=False, error=str(e) or "Failed to share to Instagram")


def _expiry(seconds: Optional[int]) -> Optional[datetime]:
    if not seconds:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=int(seconds))


def _expired(expires_at: Optional[datetime]) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < datetime.now(timezone.utc)
