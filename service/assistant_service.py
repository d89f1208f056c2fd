# service/assistant_service.py
import logging
from typing import Any, Callable, Dict, List, Optional
from core.function_calls import FunctionCallDispatcher
from core.openai_realtime_client import OpenAIRealtimeClient
from core.realtime_bridge import Microphone, PeerConnection, RealtimeBridge
from model.assistant import CartItem, FunctionCallRequest, FunctionCallResult
from repository.cart_repository import CartChange, CartRepository

logger = logging.getLogger(__name__)


class SessionCart:
    """CartStore bound to one browser session."""

    def __init__(self, carts: CartRepository, session_id: str) -> None:
        self._carts = carts
        self._session_id = session_id

    async def load(self) -> List[CartItem]:
        return await self._carts.load(self._session_id)

    async def update(self, change: CartChange) -> List[CartItem]:
        return await self._carts.update(self._session_id, change)


class AssistantService:
    def __init__(
        self, carts: CartRepository, realtime: Optional[OpenAIRealtimeClient] = None
    ) -> None:
        self._carts = carts
        self._realtime = realtime or OpenAIRealtimeClient()

    async def create_realtime_session(self, voice: str = "alloy") -> Dict[str, Any]:
        session = await self._realtime.create_session(voice)
        logger.info("assistant.session.created voice=%s", session.get("voice") or voice)
        return session

    def open_bridge(
        self,
        session_id: str,
        *,
        peer_factory: Callable[[], PeerConnection],
        microphone: Microphone,
        voice: str = "alloy",
        on_change: Optional[Callable[[RealtimeBridge], None]] = None,
        on_redirect: Optional[Callable[[str], None]] = None,
    ) -> RealtimeBridge:
        """
        Build a voice session for one shopper. Session minting and the SDP
        exchange go through the realtime client; tool calls act on the
        shopper's stored cart.
        """
        logger.info("assistant.bridge.open session=%s voice=%s", session_id, voice)
        return RealtimeBridge(
            create_session=self._realtime.create_session,
            exchange_sdp=self._realtime.exchange_sdp,
            peer_factory=peer_factory,
            microphone=microphone,
            dispatcher=FunctionCallDispatcher(SessionCart(self._carts, session_id)),
            voice=voice,
            on_change=on_change,
            on_redirect=on_redirect,
        )

    async def handle_function_call(self, request: FunctionCallRequest) -> FunctionCallResult:
        dispatcher = FunctionCallDispatcher(SessionCart(self._carts, request.sessionId))
        return await dispatcher.dispatch(request)

    async def get_cart(self, session_id: str) -> List[CartItem]:
        return await self._carts.load(session_id)
