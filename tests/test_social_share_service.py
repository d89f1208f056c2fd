"""Tests for OAuth connect flows and TikTok / Instagram publishing."""

import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from core.instagram_client import InstagramClient
from core.tiktok_client import TikTokClient, code_challenge
from model.social import InstagramShareOptions, SocialMediaToken, TikTokShareOptions
from repository.oauth_state_repository import OAuthStateRepository
from service.social_account_service import SocialAccountService
from service.social_share_service import SocialShareService
from service.storage_service import StorageService
from util.constants import ExternalURIs
from util.enums import Platform
from util.errors import AuthenticationError

VIDEO = "https://cdn.example.com/v.mp4"


class FakeTokens:
    def __init__(self) -> None:
        self.rows: Dict[Tuple[str, Platform], SocialMediaToken] = {}
        self.used: List[Platform] = []

    def seed(self, user_id: str, platform: Platform, **fields) -> None:
        self.rows[(user_id, platform)] = SocialMediaToken(
            user_id=user_id, platform=platform, **fields
        )

    async def store(
        self,
        user_id: str,
        platform: Platform,
        *,
        access_token: str,
        platform_user_id: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        username: Optional[str] = None,
    ) -> None:
        self.seed(
            user_id,
            platform,
            access_token=access_token,
            platform_user_id=platform_user_id,
            refresh_token=refresh_token,
            expires_at=expires_at,
            username=username,
        )

    async def get(self, user_id: str, platform: Platform) -> Optional[SocialMediaToken]:
        return self.rows.get((user_id, platform))

    async def list_for_user(self, user_id: str) -> List[SocialMediaToken]:
        return [t for (uid, _), t in self.rows.items() if uid == user_id]

    async def delete(self, user_id: str, platform: Platform) -> None:
        self.rows.pop((user_id, platform), None)

    async def mark_used(self, user_id: str, platform: Platform) -> None:
        self.used.append(platform)


def _service(tokens: FakeTokens, http, no_sleep) -> SocialShareService:
    return SocialShareService(
        tokens,
        OAuthStateRepository(),
        SocialAccountService(tokens),
        StorageService(),
        tiktok=TikTokClient(http),
        instagram=InstagramClient(http),
        sleep=no_sleep,
    )


def _tiktok_handler(statuses: List[dict], seen: List[httpx.Request]):
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        url = str(request.url)
        if request.method == "HEAD":
            return httpx.Response(200, headers={"content-length": "1024"})
        if url == ExternalURIs.TIKTOK_TOKEN:
            return httpx.Response(
                200,
                json={
                    "access_token": "fresh-token",
                    "refresh_token": "r2",
                    "expires_in": 86400,
                    "open_id": "open-1",
                },
            )
        if url in (ExternalURIs.TIKTOK_INBOX_INIT, ExternalURIs.TIKTOK_DIRECT_INIT):
            return httpx.Response(200, json={"data": {"publish_id": "p1"}})
        if url == ExternalURIs.TIKTOK_STATUS:
            status = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            return httpx.Response(200, json={"data": status})
        return httpx.Response(404, json={"error": {"message": f"unexpected {url}"}})

    return handler


class TestTikTokShare:
    @pytest.mark.asyncio
    async def test_inbox_upload_end_to_end(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.TIKTOK, access_token="t1", platform_user_id="open-1")
        seen: List[httpx.Request] = []
        handler = _tiktok_handler(
            [{"status": "PROCESSING_DOWNLOAD"}, {"status": "PUBLISH_SUCCESS", "item_id": "i1"}],
            seen,
        )
        service = _service(tokens, mock_http(handler), no_sleep)

        result = await service.share_to_tiktok("u1", TikTokShareOptions(videoUrl=VIDEO))

        assert result.success is True
        assert result.postId == "i1"
        assert result.postUrl == "https://www.tiktok.com/@open-1/video/i1"
        assert tokens.used == [Platform.TIKTOK]

        init = next(r for r in seen if str(r.url) == ExternalURIs.TIKTOK_INBOX_INIT)
        body = json.loads(init.content)
        assert body["source_info"] == {
            "source": "PULL_FROM_URL",
            "video_url": VIDEO,
            "video_size": 1024,
        }
        assert init.headers["authorization"] == "Bearer t1"
        assert no_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_direct_post_carries_caption(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.TIKTOK, access_token="t1", platform_user_id="open-1")
        seen: List[httpx.Request] = []
        service = _service(
            tokens,
            mock_http(_tiktok_handler([{"status": "PUBLISH_SUCCESS", "item_id": "i2"}], seen)),
            no_sleep,
        )

        result = await service.share_to_tiktok(
            "u1", TikTokShareOptions(videoUrl=VIDEO, caption="New drop", asDraft=False)
        )

        assert result.success
        init = next(r for r in seen if str(r.url) == ExternalURIs.TIKTOK_DIRECT_INIT)
        assert json.loads(init.content)["post_info"]["title"] == "New drop"

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_first(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed(
            "u1",
            Platform.TIKTOK,
            access_token="stale",
            refresh_token="r1",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
            platform_user_id="open-1",
        )
        seen: List[httpx.Request] = []
        service = _service(
            tokens,
            mock_http(_tiktok_handler([{"status": "PUBLISH_SUCCESS", "item_id": "i3"}], seen)),
            no_sleep,
        )

        result = await service.share_to_tiktok("u1", TikTokShareOptions(videoUrl=VIDEO))

        assert result.success
        stored = tokens.rows[("u1", Platform.TIKTOK)]
        assert stored.access_token == "fresh-token"
        assert stored.refresh_token == "r2"
        init = next(r for r in seen if str(r.url) == ExternalURIs.TIKTOK_INBOX_INIT)
        assert init.headers["authorization"] == "Bearer fresh-token"

    @pytest.mark.asyncio
    async def test_not_connected(self, provider_keys, mock_http, no_sleep) -> None:
        seen: List[httpx.Request] = []
        service = _service(FakeTokens(), mock_http(_tiktok_handler([{}], seen)), no_sleep)

        result = await service.share_to_tiktok("u1", TikTokShareOptions(videoUrl=VIDEO))

        assert result.success is False
        assert result.error == "TikTok account not connected"
        assert seen == []

    @pytest.mark.asyncio
    async def test_publish_failure_is_wrapped(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.TIKTOK, access_token="t1", platform_user_id="open-1")
        handler = _tiktok_handler(
            [{"status": "PUBLISH_FAILED", "fail_reason": "spam_risk_too_many_posts"}], []
        )
        service = _service(tokens, mock_http(handler), no_sleep)

        result = await service.share_to_tiktok("u1", TikTokShareOptions(videoUrl=VIDEO))

        assert result.success is False
        assert result.error == "TikTok publishing failed: spam_risk_too_many_posts"
        assert tokens.used == []

    @pytest.mark.asyncio
    async def test_unsupported_media_source(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.TIKTOK, access_token="t1", platform_user_id="open-1")
        service = _service(tokens, mock_http(_tiktok_handler([{}], [])), no_sleep)

        result = await service.share_to_tiktok(
            "u1", TikTokShareOptions(videoUrl="blob:https://studio/123")
        )
        assert result.success is False
        assert result.error == "Invalid data URI format"


class TestInstagramShare:
    @pytest.mark.asyncio
    async def test_reel_end_to_end(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.INSTAGRAM, access_token="page-token", platform_user_id="ig-1")
        forms: Dict[str, Dict[str, List[str]]] = {}
        checks = []

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path.rsplit("/", 2)
            tail = "/".join(path[-2:])
            if request.method == "POST":
                forms[tail] = parse_qs(request.content.decode())
            if tail == "ig-1/media":
                return httpx.Response(200, json={"id": "c1"})
            if path[-1] == "c1":
                checks.append(1)
                status = "IN_PROGRESS" if len(checks) == 1 else "FINISHED"
                return httpx.Response(200, json={"status_code": status})
            if tail == "ig-1/media_publish":
                return httpx.Response(200, json={"id": "post-1"})
            if path[-1] == "ig-1":
                return httpx.Response(200, json={"username": "shop", "id": "ig-1"})
            return httpx.Response(404)

        service = _service(tokens, mock_http(handler), no_sleep)
        result = await service.share_to_instagram(
            "u1", InstagramShareOptions(videoUrl=VIDEO, caption="Hello")
        )

        assert result.success is True
        assert result.postId == "post-1"
        assert result.postUrl == "https://www.instagram.com/p/post-1/"
        assert tokens.used == [Platform.INSTAGRAM]

        container = forms["ig-1/media"]
        assert container["media_type"] == ["REELS"]
        assert container["share_to_feed"] == ["true"]
        assert container["thumb_offset"] == ["2000"]
        assert forms["ig-1/media_publish"]["creation_id"] == ["c1"]
        assert len(checks) == 2

    @pytest.mark.asyncio
    async def test_container_error(self, provider_keys, mock_http, no_sleep) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.INSTAGRAM, access_token="page-token", platform_user_id="ig-1")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"id": "c1"})
            return httpx.Response(
                200, json={"status_code": "ERROR", "status": "Error: 2207026"}
            )

        service = _service(tokens, mock_http(handler), no_sleep)
        result = await service.share_to_instagram("u1", InstagramShareOptions(videoUrl=VIDEO))

        assert result.success is False
        assert result.error == "Instagram media processing failed: Error: 2207026"

    @pytest.mark.asyncio
    async def test_not_connected(self, provider_keys, mock_http, no_sleep) -> None:
        service = _service(FakeTokens(), mock_http(lambda r: httpx.Response(500)), no_sleep)
        result = await service.share_to_instagram("u1", InstagramShareOptions(videoUrl=VIDEO))
        assert result.error == "Instagram account not connected"


class TestOAuth:
    @pytest.mark.asyncio
    async def test_tiktok_init_binds_state(self, redis, provider_keys, mock_http, no_sleep) -> None:
        service = _service(FakeTokens(), mock_http(lambda r: httpx.Response(500)), no_sleep)

        start = await service.initiate_tiktok_auth("u1")

        query = parse_qs(urlparse(start.auth_url).query)
        assert query["state"] == [start.state]
        assert query["client_key"] == ["tiktok-client-key"]
        assert query["code_challenge"] == [code_challenge(start.code_verifier)]
        assert query["code_challenge_method"] == ["S256"]
        assert query["redirect_uri"] == [
            "https://studio.example.com/api/auth/tiktok/callback"
        ]
        assert await OAuthStateRepository().pop(Platform.TIKTOK, start.state) == "u1"

    @pytest.mark.asyncio
    async def test_state_mismatch_rejected_before_exchange(
        self, redis, provider_keys, mock_http, no_sleep
    ) -> None:
        hits: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hits.append(request)
            return httpx.Response(200, json={"access_token": "x", "open_id": "o"})

        service = _service(FakeTokens(), mock_http(handler), no_sleep)
        start = await service.initiate_tiktok_auth("u1")

        with pytest.raises(AuthenticationError, match="Invalid state parameter"):
            await service.handle_tiktok_callback("code", "forged", start.state, start.code_verifier)
        with pytest.raises(AuthenticationError):
            await service.handle_instagram_callback("code", "forged", None)
        assert hits == []

    @pytest.mark.asyncio
    async def test_missing_verifier(self, redis, provider_keys, mock_http, no_sleep) -> None:
        service = _service(FakeTokens(), mock_http(lambda r: httpx.Response(500)), no_sleep)
        start = await service.initiate_tiktok_auth("u1")
        with pytest.raises(AuthenticationError, match="Code verifier not found"):
            await service.handle_tiktok_callback("code", start.state, start.state, None)

    @pytest.mark.asyncio
    async def test_tiktok_callback_stores_token(self, redis, provider_keys, mock_http, no_sleep) -> None:
        forms = []

        def handler(request: httpx.Request) -> httpx.Response:
            forms.append(parse_qs(request.content.decode()))
            return httpx.Response(
                200,
                json={"access_token": "a1", "refresh_token": "r1", "expires_in": 86400, "open_id": "open-9"},
            )

        tokens = FakeTokens()
        service = _service(tokens, mock_http(handler), no_sleep)
        start = await service.initiate_tiktok_auth("u1")

        user_id = await service.handle_tiktok_callback(
            "the-code", start.state, start.state, start.code_verifier
        )

        assert user_id == "u1"
        stored = tokens.rows[("u1", Platform.TIKTOK)]
        assert stored.access_token == "a1"
        assert stored.platform_user_id == "open-9"
        assert stored.expires_at is not None
        assert forms[0]["code_verifier"] == [start.code_verifier]
        assert forms[0]["grant_type"] == ["authorization_code"]

        # states are single-use
        with pytest.raises(AuthenticationError):
            await service.handle_tiktok_callback(
                "the-code", start.state, start.state, start.code_verifier
            )

    @pytest.mark.asyncio
    async def test_instagram_callback_stores_page_token(
        self, redis, provider_keys, mock_http, no_sleep
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            params = request.url.params
            if path.endswith("oauth/access_token"):
                if params.get("grant_type") == "fb_exchange_token":
                    return httpx.Response(200, json={"access_token": "long"})
                return httpx.Response(200, json={"access_token": "short"})
            if path.endswith("me/accounts"):
                return httpx.Response(200, json={"data": [{"id": "page-1", "access_token": "page-token"}]})
            if path.endswith("page-1"):
                return httpx.Response(200, json={"instagram_business_account": {"id": "ig-7"}})
            return httpx.Response(404)

        tokens = FakeTokens()
        service = _service(tokens, mock_http(handler), no_sleep)
        start = await service.initiate_instagram_auth("u1")

        assert await service.handle_instagram_callback("code", start.state, start.state) == "u1"
        stored = tokens.rows[("u1", Platform.INSTAGRAM)]
        assert stored.access_token == "page-token"
        assert stored.platform_user_id == "ig-7"

    @pytest.mark.asyncio
    async def test_instagram_without_pages(self, redis, provider_keys, mock_http, no_sleep) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("me/accounts"):
                return httpx.Response(200, json={"data": []})
            return httpx.Response(200, json={"access_token": "tok"})

        service = _service(FakeTokens(), mock_http(handler), no_sleep)
        start = await service.initiate_instagram_auth("u1")

        with pytest.raises(Exception, match="No Facebook Pages found"):
            await service.handle_instagram_callback("code", start.state, start.state)


class TestAccounts:
    @pytest.mark.asyncio
    async def test_lists_every_platform(self) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.TIKTOK, access_token="t", platform_user_id="open-1234")
        accounts = await SocialAccountService(tokens).get_social_accounts("u1")

        by_platform = {a.platform: a for a in accounts}
        assert by_platform[Platform.TIKTOK].connected
        assert by_platform[Platform.TIKTOK].username == "TikTok User 1234"
        assert by_platform[Platform.TIKTOK].accountType == "Creator Account"
        assert not by_platform[Platform.INSTAGRAM].connected

    @pytest.mark.asyncio
    async def test_disconnect(self) -> None:
        tokens = FakeTokens()
        tokens.seed("u1", Platform.INSTAGRAM, access_token="t", platform_user_id="ig")
        service = SocialAccountService(tokens)

        assert await service.disconnect("u1", Platform.INSTAGRAM) is True
        assert tokens.rows == {}
