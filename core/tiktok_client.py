# core/tiktok_client.py
import base64
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode
from pydantic import BaseModel
from config.settings import settings
from core.http import (
    ClientFactory,
    bearer,
    default_client_factory,
    json_or_empty,
    raise_for_poll,
    raise_for_provider,
)
from util.constants import TIKTOK_SCOPES, ExternalURIs, InternalURIs
from util.errors import ExternalApiError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "tiktok"


class TikTokToken(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    open_id: Optional[str] = None


def make_code_verifier() -> str:
    return secrets.token_urlsafe(32)


def code_challenge(verifier: str) -> str:
    """PKCE S256: base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def redirect_uri() -> str:
    return settings.APP_HOST.rstrip("/") + InternalURIs.TIKTOK_CALLBACK


class TikTokClient:
    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    # ---------------- OAuth ----------------

    def authorize_url(self, state: str, verifier: str) -> str:
        params = {
            "client_key": settings.require("TIKTOK_API_KEY"),
            "scope": ",".join(TIKTOK_SCOPES),
            "response_type": "code",
            "redirect_uri": redirect_uri(),
            "state": state,
            "code_challenge": code_challenge(verifier),
            "code_challenge_method": "S256",
        }
        return f"{ExternalURIs.TIKTOK_AUTHORIZE}?{urlencode(params)}"

    async def _token(self, form: Dict[str, str], action: str) -> TikTokToken:
        form = {
            "client_key": settings.require("TIKTOK_API_KEY"),
            "client_secret": settings.require("TIKTOK_API_SECRET"),
            **form,
        }
        with timed(logger, "tiktok.token", grant=form.get("grant_type")):
            async with self._http() as client:
                res = await client.post(
                    ExternalURIs.TIKTOK_TOKEN,
                    data=form,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        raise_for_provider(res, PROVIDER, action)
        body = json_or_empty(res)
        data = body.get("data") if isinstance(body.get("data"), dict) else body
        if not data.get("access_token"):
            raise ExternalApiError("Invalid response from TikTok", provider=PROVIDER)
        return TikTokToken.model_validate(data)

    async def exchange_code(self, code: str, verifier: str) -> TikTokToken:
        token = await self._token(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri(),
                "code_verifier": verifier,
            },
            "Failed to exchange TikTok authorization code",
        )
        if not token.open_id:
            raise ExternalApiError("Invalid response from TikTok", provider=PROVIDER)
        return token

    async def refresh(self, refresh_token: str) -> TikTokToken:
        return await self._token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            "Failed to refresh TikTok token",
        )

    # ---------------- Publishing ----------------

    async def video_size(self, url: str) -> int:
        async with self._http() as client:
            res = await client.head(url)
        if not res.is_success:
            raise ExternalApiError("Failed to access video URL", provider=PROVIDER)
        size = int(res.headers.get("content-length") or 0)
        if not size:
            raise ExternalApiError("Could not determine video size", provider=PROVIDER)
        return size

    async def init_publish(
        self,
        access_token: str,
        *,
        video_url: str,
        video_size: int,
        caption: str,
        as_draft: bool,
    ) -> str:
        """Start a PULL_FROM_URL upload; drafts go to the inbox, otherwise a direct post."""
        source_info = {
            "source": "PULL_FROM_URL",
            "video_url": video_url,
            "video_size": video_size,
        }
        if as_draft:
            url = ExternalURIs.TIKTOK_INBOX_INIT
            body: Dict[str, Any] = {"source_info": source_info}
        else:
            url = ExternalURIs.TIKTOK_DIRECT_INIT
            body = {
                "post_info": {
                    "title": caption,
                    "privacy_level": "PUBLIC_TO_EVERYONE",
                    "disable_comment": False,
                    "disable_duet": False,
                    "disable_stitch": False,
                },
                "source_info": source_info,
            }

        with timed(logger, "tiktok.publish.init", draft=as_draft, bytes=video_size):
            async with self._http() as client:
                res = await client.post(url, headers=bearer(access_token), json=body)
        raise_for_provider(res, PROVIDER, "Failed to initialize TikTok video")

        publish_id = (json_or_empty(res).get("data") or {}).get("publish_id")
        if not publish_id:
            raise ExternalApiError(
                "Invalid response from TikTok video init", provider=PROVIDER
            )
        return str(publish_id)

    async def fetch_publish_status(self, access_token: str, publish_id: str) -> Dict[str, Any]:
        """Returns the `data` object (status, item_id, error_code)."""
        async with self._http() as client:
            res = await client.post(
                ExternalURIs.TIKTOK_STATUS,
                headers=bearer(access_token),
                json={"publish_id": publish_id},
            )
        raise_for_poll(res, PROVIDER, "TikTok status check failed")
        data = json_or_empty(res).get("data")
        return data if isinstance(data, dict) else {}
