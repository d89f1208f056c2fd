# core/instagram_client.py
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode
from config.settings import settings
from core.http import (
    ClientFactory,
    default_client_factory,
    json_or_empty,
    raise_for_poll,
    raise_for_provider,
)
from util.constants import INSTAGRAM_SCOPES, ExternalURIs, InternalURIs
from util.errors import ExternalApiError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "instagram"


def redirect_uri() -> str:
    return settings.APP_HOST.rstrip("/") + InternalURIs.INSTAGRAM_CALLBACK


class InstagramClient:
    """Instagram publishing through the Facebook Graph API (business accounts only)."""

    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    async def _get(self, path: str, params: Dict[str, str], action: str) -> Dict[str, Any]:
        async with self._http() as client:
            res = await client.get(f"{ExternalURIs.GRAPH_API}/{path}", params=params)
        raise_for_provider(res, PROVIDER, action)
        return json_or_empty(res)

    async def _post(self, path: str, form: Dict[str, str], action: str) -> Dict[str, Any]:
        async with self._http() as client:
            res = await client.post(f"{ExternalURIs.GRAPH_API}/{path}", data=form)
        raise_for_provider(res, PROVIDER, action)
        return json_or_empty(res)

    # ---------------- OAuth ----------------

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": settings.require("INSTAGRAM_APP_ID"),
            "redirect_uri": redirect_uri(),
            "scope": ",".join(INSTAGRAM_SCOPES),
            "response_type": "code",
            "state": state,
        }
        return f"{ExternalURIs.FACEBOOK_OAUTH_DIALOG}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        with timed(logger, "instagram.token", grant="authorization_code"):
            data = await self._get(
                "oauth/access_token",
                {
                    "client_id": settings.require("INSTAGRAM_APP_ID"),
                    "client_secret": settings.require("INSTAGRAM_APP_SECRET"),
                    "code": code,
                    "redirect_uri": redirect_uri(),
                },
                "Failed to exchange Instagram authorization code",
            )
        if not data.get("access_token"):
            raise ExternalApiError("Invalid response from Instagram", provider=PROVIDER)
        return str(data["access_token"])

    async def long_lived_token(self, short_token: str) -> str:
        with timed(logger, "instagram.token", grant="fb_exchange_token"):
            data = await self._get(
                "oauth/access_token",
                {
                    "grant_type": "fb_exchange_token",
                    "client_id": settings.require("INSTAGRAM_APP_ID"),
                    "client_secret": settings.require("INSTAGRAM_APP_SECRET"),
                    "fb_exchange_token": short_token,
                },
                "Failed to get long-lived Instagram token",
            )
        if not data.get("access_token"):
            raise ExternalApiError(
                "Invalid response for long-lived token", provider=PROVIDER
            )
        return str(data["access_token"])

    async def first_page(self, user_token: str) -> Dict[str, Any]:
        """First Facebook Page the user manages; carries the page access token."""
        data = await self._get(
            "me/accounts",
            {"access_token": user_token},
            "Failed to fetch Instagram accounts",
        )
        pages = data.get("data") or []
        if not pages:
            raise ExternalApiError(
                "No Facebook Pages found. Instagram Business account must be "
                "connected to a Facebook Page.",
                provider=PROVIDER,
            )
        return pages[0]

    async def business_account_id(self, page_id: str, page_token: str) -> str:
        data = await self._get(
            page_id,
            {"fields": "instagram_business_account", "access_token": page_token},
            "Failed to fetch Instagram business account",
        )
        account = data.get("instagram_business_account") or {}
        if not account.get("id"):
            raise ExternalApiError(
                "No Instagram Business account found for this Facebook Page",
                provider=PROVIDER,
            )
        return str(account["id"])

    # ---------------- Publishing ----------------

    async def create_container(
        self,
        ig_user_id: str,
        token: str,
        *,
        video_url: str,
        caption: str,
        as_reel: bool,
        share_to_feed: bool,
        thumbnail_url: Optional[str] = None,
    ) -> str:
        form = {"video_url": video_url, "caption": caption, "access_token": token}
        if as_reel:
            form["media_type"] = "REELS"
            if share_to_feed:
                form["share_to_feed"] = "true"
            if thumbnail_url:
                form["thumb_url"] = thumbnail_url
            else:
                # frame at 2s
                form["thumb_offset"] = "2000"

        with timed(logger, "instagram.container.create", reel=as_reel):
            data = await self._post(
                f"{ig_user_id}/media", form, "Failed to create Instagram media container"
            )
        if not data.get("id"):
            raise ExternalApiError(
                "Invalid response from Instagram container creation", provider=PROVIDER
            )
        return str(data["id"])

    async def get_container_status(self, container_id: str, token: str) -> Dict[str, Any]:
        async with self._http() as client:
            res = await client.get(
                f"{ExternalURIs.GRAPH_API}/{container_id}",
                params={"fields": "status_code,status", "access_token": token},
            )
        raise_for_poll(res, PROVIDER, "Instagram container status check failed")
        return json_or_empty(res)

    async def publish_container(self, ig_user_id: str, token: str, container_id: str) -> str:
        with timed(logger, "instagram.container.publish"):
            data = await self._post(
                f"{ig_user_id}/media_publish",
                {"creation_id": container_id, "access_token": token},
                "Failed to publish Instagram media",
            )
        if not data.get("id"):
            raise ExternalApiError(
                "Invalid response from Instagram publish", provider=PROVIDER
            )
        return str(data["id"])

    async def get_username(self, ig_user_id: str, token: str) -> Optional[str]:
        """Best effort; a failed lookup only means no post URL."""
        async with self._http() as client:
            res = await client.get(
                f"{ExternalURIs.GRAPH_API}/{ig_user_id}",
                params={"fields": "username", "access_token": token},
            )
        if not res.is_success:
            logger.warning("instagram.username.failed status=%d", res.status_code)
            return None
        return json_or_empty(res).get("username") or None
