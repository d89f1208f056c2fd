# core/openai_realtime_client.py
import logging
from typing import Any, Dict, Final, List, Optional
from config.settings import settings
from core.http import ClientFactory, bearer, default_client_factory, raise_for_provider
from util.constants import REALTIME_VOICES, ExternalURIs
from util.errors import ExternalApiError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "openai"
_BETA: Final[Dict[str, str]] = {"OpenAI-Beta": "realtime=v1"}


def _fn(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": {"type": "object", "properties": properties, "required": required},
    }


ASSISTANT_TOOLS: Final[List[Dict[str, Any]]] = [
    _fn(
        "recommend_products",
        "Recommend products based on user request and specifications",
        {
            "query": {"type": "string", "description": "The search query for products"},
            "category": {
                "type": "string",
                "description": "The category of products to search for",
            },
            "max": {"type": "integer", "description": "Maximum number of results to return"},
        },
        ["query"],
    ),
    _fn(
        "add_to_cart",
        "Add a product to the cart",
        {
            "product_id": {
                "type": "string",
                "description": "The ID of the product to add to the cart",
            },
            "quantity": {"type": "integer", "description": "The quantity of the product to add"},
        },
        ["product_id", "quantity"],
    ),
    _fn("initiate_checkout", "Initiate the checkout process", {}, []),
    _fn(
        "start_visualization",
        "Start a visualization with the selected products",
        {
            "product_ids": {
                "type": "array",
                "items": {
                    "type": "string",
                    "description": "The IDs of the products to include in the visualization",
                },
            }
        },
        ["product_ids"],
    ),
    _fn(
        "add_product_to_visualization",
        "Add a product to the visualization",
        {
            "product_id": {
                "type": "string",
                "description": "The ID of the product to add to the visualization",
            }
        },
        ["product_id"],
    ),
    _fn(
        "change_product_color",
        "Change the color of a product in the visualization",
        {
            "product_id": {
                "type": "string",
                "description": "The ID of the product to change the color of",
            },
            "color": {"type": "string", "description": "The hex code of the new color"},
        },
        ["product_id", "color"],
    ),
    _fn(
        "get_knowledge_base",
        "Retrieve information from the knowledge base",
        {"query": {"type": "string", "description": "The search query for the knowledge base"}},
        ["query"],
    ),
]


def session_config(voice: str = "alloy") -> Dict[str, Any]:
    if voice not in REALTIME_VOICES:
        voice = "alloy"
    return {
        "model": settings.REALTIME_MODEL,
        "modalities": ["audio", "text"],
        "instructions": settings.REALTIME_INSTRUCTIONS,
        "voice": voice,
        "tools": ASSISTANT_TOOLS,
        "tool_choice": "auto",
        "turn_detection": {
            "type": "server_vad",
            "threshold": 0.5,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 500,
            "create_response": True,
            "interrupt_response": True,
        },
        "input_audio_transcription": {"model": settings.REALTIME_TRANSCRIBE_MODEL},
    }


class OpenAIRealtimeClient:
    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    async def create_session(self, voice: str = "alloy") -> Dict[str, Any]:
        """Mint an ephemeral session; the caller hands client_secret.value to the browser."""
        headers = {**bearer(settings.require("OPENAI_API_KEY")), **_BETA}
        with timed(logger, "realtime.session", voice=voice):
            async with self._http() as client:
                res = await client.post(
                    ExternalURIs.OPENAI_REALTIME_SESSIONS,
                    headers=headers,
                    json=session_config(voice),
                )
        raise_for_provider(res, PROVIDER, "Failed to create session")
        data = res.json()
        if not ((data or {}).get("client_secret") or {}).get("value"):
            raise ExternalApiError(
                "Failed to get ephemeral token from session response", provider=PROVIDER
            )
        return data

    async def exchange_sdp(self, offer_sdp: str, ephemeral_token: str) -> str:
        """POST the local SDP offer, get the remote answer back as text."""
        headers = {
            **bearer(ephemeral_token),
            "Content-Type": "application/sdp",
            **_BETA,
        }
        with timed(logger, "realtime.sdp"):
            async with self._http() as client:
                res = await client.post(
                    ExternalURIs.OPENAI_REALTIME,
                    params={"model": settings.REALTIME_MODEL},
                    headers=headers,
                    content=offer_sdp.encode("utf-8"),
                )
        raise_for_provider(res, PROVIDER, "Failed to send SDP offer to OpenAI")
        return res.text
