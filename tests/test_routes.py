"""HTTP surface tests; services are swapped out through dependency overrides."""

import json
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from controller.controller_dependencies import (
    get_assistant_service,
    get_current_user_id,
    get_social_share_service,
    get_video_service,
    get_website_generation_service,
)
from main import app
from model.assistant import CartItem
from model.generation import GenerationStatus, GenerationUpdates
from model.social import OAuthStart, ShareResult
from model.video import VideoGenerationStarted, VideoStatusResponse
from service.assistant_service import AssistantService
from util.enums import ErrorMessage
from util.errors import AuthenticationError


class FakeVideoService:
    def __init__(self) -> None:
        self.requests = []

    async def generate_video(self, request) -> VideoGenerationStarted:
        self.requests.append(request)
        return VideoGenerationStarted(success=True, generationId="task-1")

    async def get_video_status(self, generation_id: str) -> VideoStatusResponse:
        return VideoStatusResponse(
            success=True, status="completed", progress=100, videoUrl="https://cdn/v.mp4"
        )


class FakeShareService:
    def __init__(self, fail_with: str = "") -> None:
        self.fail_with = fail_with
        self.callbacks = []

    async def initiate_tiktok_auth(self, user_id: str) -> OAuthStart:
        return OAuthStart(auth_url="https://www.tiktok.com/v2/auth/authorize/?x=1", state="st", code_verifier="cv")

    async def handle_tiktok_callback(self, code, state, stored_state, code_verifier) -> str:
        self.callbacks.append((code, state, stored_state, code_verifier))
        if self.fail_with:
            raise AuthenticationError(self.fail_with)
        return "u1"

    async def share_to_tiktok(self, user_id, options) -> ShareResult:
        return ShareResult(success=True, postId="i1")


class FakeGenerationService:
    async def start(self, prompt: str, features: List[str]) -> str:
        return "gen-1"

    async def get_status(self, generation_id: str) -> GenerationStatus:
        return GenerationStatus(status="planning")

    async def get_updates(self, generation_id: str) -> GenerationUpdates:
        return GenerationUpdates(statusMessages=["Generation process initiated."])


class MemoryCarts:
    def __init__(self) -> None:
        self.carts: Dict[str, List[CartItem]] = {}

    async def load(self, session_id: str) -> List[CartItem]:
        return list(self.carts.get(session_id, []))

    async def update(self, session_id: str, change) -> List[CartItem]:
        self.carts[session_id] = list(change(list(self.carts.get(session_id, []))))
        return list(self.carts[session_id])


@pytest.fixture
def client(provider_keys):
    saved = dict(app.dependency_overrides)
    yield TestClient(app)
    app.dependency_overrides = saved


def test_healthz(client) -> None:
    # TestClient without a context manager skips the lifespan, so no Redis client exists
    body = client.get("/healthz").json()
    assert body["ok"] is True
    assert body["redis"] is False
    assert body["backgroundJobs"] >= 0


class TestVideoRoutes:
    def test_generate_is_accepted(self, client) -> None:
        service = FakeVideoService()
        app.dependency_overrides[get_video_service] = lambda: service

        res = client.post(
            "/api/v1/video/generate",
            json={"scenes": [{"imageUrl": "https://img/1.png"}], "theme": "social-reel"},
        )

        assert res.status_code == 202
        assert res.json() == {"success": True, "generationId": "task-1", "error": None}
        assert service.requests[0].scenes[0].imageUrl == "https://img/1.png"

    def test_invalid_theme_is_rejected(self, client) -> None:
        app.dependency_overrides[get_video_service] = FakeVideoService
        res = client.post("/api/v1/video/generate", json={"scenes": [], "theme": "vaporwave"})
        assert res.status_code == 422

    def test_watch_streams_ndjson(self, client) -> None:
        app.dependency_overrides[get_video_service] = FakeVideoService

        res = client.get("/api/v1/video/task-1/watch")

        assert res.headers["content-type"].startswith("application/x-ndjson")
        lines = [json.loads(line) for line in res.text.splitlines()]
        assert lines[-1]["type"] == "done"
        assert lines[-1]["payload"]["videoUrl"] == "https://cdn/v.mp4"
        assert lines[-1]["payload"]["isGeneratingVideo"] is False
        assert all(line["type"] != "error" for line in lines)


class TestSocialRoutes:
    def test_init_sets_state_cookies(self, client) -> None:
        app.dependency_overrides[get_current_user_id] = lambda: "u1"
        app.dependency_overrides[get_social_share_service] = FakeShareService

        res = client.post("/api/v1/auth/tiktok")

        assert res.json() == {"authUrl": "https://www.tiktok.com/v2/auth/authorize/?x=1"}
        assert res.cookies["tiktok_auth_state"] == "st"
        assert res.cookies["tiktok_code_verifier"] == "cv"

    def test_callback_without_params(self, client) -> None:
        app.dependency_overrides[get_social_share_service] = FakeShareService
        res = client.get("/api/auth/tiktok/callback", follow_redirects=False)

        assert res.status_code == 302
        assert res.headers["location"] == "https://studio.example.com/video-generator?error=missing_params"

    def test_callback_success_redirects_connected(self, client) -> None:
        service = FakeShareService()
        app.dependency_overrides[get_social_share_service] = lambda: service
        client.cookies.set("tiktok_auth_state", "st")
        client.cookies.set("tiktok_code_verifier", "cv")

        res = client.get(
            "/api/auth/tiktok/callback", params={"code": "c", "state": "st"}, follow_redirects=False
        )

        assert res.headers["location"] == "https://studio.example.com/video-generator?connected=tiktok"
        assert service.callbacks == [("c", "st", "st", "cv")]

    def test_callback_state_mismatch(self, client) -> None:
        app.dependency_overrides[get_social_share_service] = lambda: FakeShareService(
            "Invalid state parameter"
        )
        res = client.get(
            "/api/auth/tiktok/callback", params={"code": "c", "state": "forged"}, follow_redirects=False
        )
        assert res.headers["location"].endswith("?error=Invalid%20state%20parameter")

    def test_share_requires_session(self, client) -> None:
        app.dependency_overrides[get_social_share_service] = FakeShareService
        res = client.post("/api/v1/share/tiktok", json={"videoUrl": "https://cdn/v.mp4"})

        assert res.status_code == 401
        assert res.json()["detail"] == ErrorMessage.NOT_AUTHENTICATED.value.message

    def test_share_with_session(self, client) -> None:
        app.dependency_overrides[get_current_user_id] = lambda: "u1"
        app.dependency_overrides[get_social_share_service] = FakeShareService
        res = client.post("/api/v1/share/tiktok", json={"videoUrl": "https://cdn/v.mp4"})
        assert res.json()["postId"] == "i1"


class TestGenerationRoutes:
    def test_start_and_status(self, client) -> None:
        app.dependency_overrides[get_website_generation_service] = FakeGenerationService

        started = client.post("/api/v1/generation", json={"prompt": "A bakery"})
        assert started.status_code == 202
        assert started.json() == {"generationId": "gen-1"}

        status = client.get("/api/generation-status", params={"id": "gen-1"})
        assert status.json() == {"status": "planning"}

    def test_updates_use_wire_names(self, client) -> None:
        app.dependency_overrides[get_website_generation_service] = FakeGenerationService
        body = client.get("/api/generation-updates", params={"id": "gen-1"}).json()
        assert body["statusMessages"] == ["Generation process initiated."]
        assert "json" in body["codeUpdates"]
        assert body["isComplete"] is False

    def test_status_requires_id(self, client) -> None:
        app.dependency_overrides[get_website_generation_service] = FakeGenerationService
        assert client.get("/api/generation-status").status_code == 422


class TestAssistantRoutes:
    def test_function_call_updates_cart(self, client) -> None:
        carts = MemoryCarts()
        app.dependency_overrides[get_assistant_service] = lambda: AssistantService(carts)

        res = client.post(
            "/api/v1/assistant/function-call",
            json={
                "name": "add_to_cart",
                "arguments": json.dumps({"product_id": "3", "quantity": 1}),
                "call_id": "c1",
                "sessionId": "s1",
            },
        )

        assert res.json()["output"]["success"] is True
        cart = client.get("/api/v1/cart/s1").json()
        assert [item["id"] for item in cart] == ["3"]
