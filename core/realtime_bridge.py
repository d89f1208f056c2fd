# core/realtime_bridge.py
import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set
from core.cleanup import CleanupHook
from core.function_calls import FunctionCallDispatcher
from model.assistant import ChatMessage, FunctionCall
from util.enums import ConnectionState
from util.errors import AppError, ExternalApiError

logger = logging.getLogger(__name__)

DATA_CHANNEL_LABEL = "oai-events"


class DataChannel(Protocol):
    @property
    def ready_state(self) -> str: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...

    def send(self, data: str) -> None: ...

    def close(self) -> None: ...


class PeerConnection(Protocol):
    def create_data_channel(self, label: str) -> DataChannel: ...

    def add_track(self, track: Any) -> None: ...

    async def create_offer(self) -> str: ...

    async def set_local_description(self, sdp: str) -> None: ...

    async def set_remote_description(self, sdp: str) -> None: ...

    async def close(self) -> None: ...


class Microphone(Protocol):
    async def open(self) -> Any: ...

    def stop(self) -> None: ...


SessionFactory = Callable[[str], Awaitable[Dict[str, Any]]]
SdpExchange = Callable[[str, str], Awaitable[str]]


class RealtimeBridge:
    """
    One voice/chat session with the realtime API over a peer connection.

    States: idle -> connecting -> connected -> (listening | speaking)* -> idle.
    Data-channel messages are handled one at a time, in arrival order.
    Anything that goes wrong (setup failure, channel error or close,
    disconnect()) releases every resource and lands back in idle.
    """

    def __init__(
        self,
        *,
        create_session: SessionFactory,
        exchange_sdp: SdpExchange,
        peer_factory: Callable[[], PeerConnection],
        microphone: Microphone,
        dispatcher: FunctionCallDispatcher,
        voice: str = "alloy",
        on_change: Optional[Callable[["RealtimeBridge"], None]] = None,
        on_redirect: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._create_session = create_session
        self._exchange_sdp = exchange_sdp
        self._peer_factory = peer_factory
        self._microphone = microphone
        self._dispatcher = dispatcher
        self._on_change = on_change
        self._on_redirect = on_redirect
        self.voice = voice

        self.state = ConnectionState.IDLE
        self.messages: List[ChatMessage] = []
        self.current_transcript = ""
        self.pending_function_call: Optional[FunctionCall] = None
        self.error: Optional[str] = None

        self._channel: Optional[DataChannel] = None
        self._cleanup = CleanupHook("realtime-bridge")
        self._inbox: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()

    # ---------------- lifecycle ----------------

    async def connect(self) -> bool:
        if self.state != ConnectionState.IDLE:
            logger.debug("realtime.connect.ignored state=%s", self.state.value)
            return False
        self.error = None
        self._set_state(ConnectionState.CONNECTING)

        try:
            session = await self._create_session(self.voice)
            token = ((session or {}).get("client_secret") or {}).get("value")
            if not token:
                raise ExternalApiError(
                    "Failed to get ephemeral token from session response", provider="openai"
                )

            pc = self._peer_factory()
            self._cleanup.register("peer-connection", pc.close)

            channel = pc.create_data_channel(DATA_CHANNEL_LABEL)
            self._channel = channel
            self._cleanup.register("data-channel", self._close_channel)
            channel.on("open", self._handle_open)
            channel.on("message", self._enqueue)
            channel.on("close", self._handle_closed)
            channel.on("error", self._handle_closed)

            worker = asyncio.create_task(self._drain(), name="realtime-bridge:inbox")
            self._tasks.add(worker)
            self._cleanup.register("inbox", self._cancel_tasks)

            try:
                track = await self._microphone.open()
            except Exception:
                logger.warning("realtime.microphone.denied")
                raise AppError(
                    "Microphone access is required for this application. "
                    "Please grant permission and try connecting again."
                )
            self._cleanup.register("microphone", self._microphone.stop)
            pc.add_track(track)

            offer = await pc.create_offer()
            await pc.set_local_description(offer)
            answer = await self._exchange_sdp(offer, token)
            if not answer:
                raise ExternalApiError("Received empty SDP answer from OpenAI", provider="openai")
            await pc.set_remote_description(answer)
            logger.info("realtime.connect.ok voice=%s", self.voice)
            return True
        except AppError as e:
            self.error = e.message
        except Exception as e:
            logger.exception("realtime.connect.error")
            self.error = str(e) or "Failed to connect"
        await self.disconnect()
        return False

    async def disconnect(self) -> None:
        """Release everything and return to idle. Safe to call repeatedly."""
        if self._cleanup.released and self.state == ConnectionState.IDLE:
            return
        logger.info("realtime.disconnect state=%s", self.state.value)
        await self._cleanup.release()
        self._channel = None
        self.current_transcript = ""
        self._set_state(ConnectionState.IDLE)

    async def wait_idle(self) -> None:
        """Block until every queued message has been handled."""
        await self._inbox.join()

    # ---------------- outbound ----------------

    def _send(self, event: Dict[str, Any]) -> bool:
        channel = self._channel
        if channel is None or channel.ready_state != "open":
            logger.warning("realtime.send.dropped type=%s", event.get("type"))
            return False
        channel.send(json.dumps(event))
        return True

    def send_text(self, text: str) -> bool:
        message = (text or "").strip()
        if not message or self.state == ConnectionState.IDLE:
            return False
        self.messages.append(
            ChatMessage(role="user", content=message, id=f"local_{int(time.time() * 1000)}")
        )
        sent = self._send(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": message}],
                },
            }
        )
        if sent:
            self._send({"type": "response.create"})
        self._changed()
        return sent

    # ---------------- inbound ----------------

    def _enqueue(self, raw: Any) -> None:
        # No worker drains the inbox once the session is torn down
        if self.state == ConnectionState.IDLE:
            logger.debug("realtime.message.dropped state=idle")
            return
        self._inbox.put_nowait(raw)

    async def _drain(self) -> None:
        while True:
            raw = await self._inbox.get()
            try:
                await self.handle_message(raw)
            except Exception:
                logger.exception("realtime.message.error")
            finally:
                self._inbox.task_done()

    async def handle_message(self, raw: Any) -> None:
        if self.state == ConnectionState.IDLE:
            return
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("realtime.message.malformed len=%d", len(str(raw)))
            return
        if not isinstance(data, dict):
            logger.warning("realtime.message.malformed kind=%s", type(data).__name__)
            return

        kind = data.get("type")
        if kind == "session.created":
            logger.info("realtime.session.created")
        elif kind == "input_audio_buffer.speech_started":
            self._set_state(ConnectionState.LISTENING)
        elif kind == "input_audio_buffer.speech_stopped":
            self._set_state(ConnectionState.CONNECTED)
        elif kind == "conversation.item.input_audio_transcription.delta":
            self.current_transcript += str(data.get("delta") or "")
            self._changed()
        elif kind == "conversation.item.input_audio_transcription.completed":
            self.current_transcript = ""
            self.messages.append(
                ChatMessage(
                    role="user",
                    content=str(data.get("transcript") or ""),
                    id=str(data.get("item_id") or ""),
                )
            )
            self._changed()
        elif kind == "response.text.delta":
            self._append_assistant_delta(str(data.get("item_id") or ""), str(data.get("delta") or ""))
            self._set_state(ConnectionState.SPEAKING)
        elif kind == "response.done":
            await self._response_done(data)

    def _append_assistant_delta(self, item_id: str, delta: str) -> None:
        last = self.messages[-1] if self.messages else None
        if last is not None and last.role == "assistant" and last.id == item_id:
            self.messages[-1] = last.model_copy(update={"content": last.content + delta})
        else:
            self.messages.append(ChatMessage(role="assistant", content=delta, id=item_id))

    async def _response_done(self, data: Dict[str, Any]) -> None:
        self._set_state(ConnectionState.CONNECTED)
        response = data.get("response") or {}

        output = response.get("output") or []
        first = output[0] if output else None
        if isinstance(first, dict) and first.get("type") == "function_call":
            await self._run_function_call(
                FunctionCall(
                    name=str(first.get("name") or ""),
                    arguments=first.get("arguments") or "{}",
                    call_id=str(first.get("call_id") or ""),
                )
            )

        product_ids = response.get("product_ids")
        if product_ids and self.messages:
            last = self.messages[-1]
            if last.role == "assistant" and last.id == data.get("item_id"):
                self.messages[-1] = last.model_copy(update={"products": list(product_ids)})
                self._changed()

    async def _run_function_call(self, call: FunctionCall) -> None:
        self.pending_function_call = call
        self._changed()
        try:
            result = await self._dispatcher.dispatch(call)
            self._send(
                {
                    "type": "conversation.item.create",
                    "item": {
                        "type": "function_call_output",
                        "call_id": call.call_id,
                        "output": json.dumps(result.output),
                    },
                }
            )
            self._send({"type": "response.create"})
            if result.redirect and self._on_redirect is not None:
                self._on_redirect(result.redirect)
        finally:
            self.pending_function_call = None
            self._changed()

    # ---------------- channel events ----------------

    def _handle_open(self, *_: Any) -> None:
        self._set_state(ConnectionState.CONNECTED)
        self._send({"type": "session.update", "session": {"voice": self.voice}})

    def _handle_closed(self, *args: Any) -> None:
        if self.state == ConnectionState.IDLE:
            return
        logger.info("realtime.channel.closed detail=%s", args[0] if args else None)
        task = asyncio.get_running_loop().create_task(self.disconnect())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ---------------- internals ----------------

    def _close_channel(self) -> None:
        channel = self._channel
        if channel is not None and channel.ready_state == "open":
            channel.close()

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        while not self._inbox.empty():
            self._inbox.get_nowait()
            self._inbox.task_done()

    def _set_state(self, state: ConnectionState) -> None:
        if self.state == state:
            return
        logger.debug("realtime.state %s -> %s", self.state.value, state.value)
        self.state = state
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
