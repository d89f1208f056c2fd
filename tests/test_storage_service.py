"""Tests for public media URLs backed by Supabase Storage."""

from typing import List

import httpx
import pytest

from core.supabase_client import SupabaseClient
from service.storage_service import StorageService, decode_data_uri
from util.errors import AppError

SUPABASE = "https://db.example.supabase.co"


def _storage(http) -> StorageService:
    return StorageService(SupabaseClient(http))


class TestDataUri:
    def test_decodes_mime_and_bytes(self) -> None:
        mime, data = decode_data_uri("data:video/mp4;base64,TVA0")
        assert mime == "video/mp4"
        assert data == b"MP4"

    def test_rejects_non_base64_uri(self) -> None:
        with pytest.raises(AppError, match="Invalid data URI format"):
            decode_data_uri("data:text/plain,hello")


class TestStorageService:
    @pytest.mark.asyncio
    async def test_remote_urls_pass_through(self, provider_keys) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        storage = _storage(lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        url = "https://cdn.example.com/v.mp4"
        assert await storage.ensure_public_url(url, "video.mp4") == url

    @pytest.mark.asyncio
    async def test_data_uri_is_uploaded_once_bucket_exists(self, provider_keys, mock_http) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/storage/v1/bucket" and request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(200, json={})

        storage = _storage(mock_http(handler))
        first = await storage.ensure_public_url("data:video/mp4;base64,TVA0", "video.mp4")
        await storage.ensure_public_url("data:image/png;base64,iVBORw0KGgo=", "thumb.png")

        assert first.startswith(f"{SUPABASE}/storage/v1/object/public/social-media-assets/")
        assert first.endswith("-video.mp4")

        calls = [(r.method, r.url.path) for r in seen]
        assert calls[:2] == [("GET", "/storage/v1/bucket"), ("POST", "/storage/v1/bucket")]
        # bucket checked once per service instance
        assert sum(1 for c in calls if c[1] == "/storage/v1/bucket") == 2

        upload = seen[2]
        assert upload.headers["content-type"] == "video/mp4"
        assert upload.headers["x-upsert"] == "true"
        assert upload.headers["authorization"] == "Bearer service-role"
        assert upload.content == b"MP4"

    @pytest.mark.asyncio
    async def test_unsupported_scheme_is_rejected(self, provider_keys, mock_http) -> None:
        storage = _storage(mock_http(lambda r: httpx.Response(500)))
        with pytest.raises(AppError) as exc:
            await storage.ensure_public_url("blob:https://studio/abc", "video.mp4")
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_upload_error_carries_provider_message(self, provider_keys, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=[{"name": "social-media-assets"}])
            return httpx.Response(413, json={"message": "Payload too large"})

        storage = _storage(mock_http(handler))
        with pytest.raises(AppError, match="Supabase upload error: Payload too large"):
            await storage.ensure_public_url("data:video/mp4;base64,TVA0", "video.mp4")


class TestSupabaseAuth:
    @pytest.mark.asyncio
    async def test_resolves_user_id(self, provider_keys, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/user"
            assert request.headers["authorization"] == "Bearer user-jwt"
            assert request.headers["apikey"] == "service-role"
            return httpx.Response(200, json={"id": "u-42"})

        assert await SupabaseClient(mock_http(handler)).get_user_id("user-jwt") == "u-42"

    @pytest.mark.asyncio
    async def test_rejected_token(self, provider_keys, mock_http) -> None:
        client = SupabaseClient(mock_http(lambda r: httpx.Response(401, json={"msg": "bad jwt"})))
        with pytest.raises(AppError) as exc:
            await client.get_user_id("expired")
        assert exc.value.status_code == 401
