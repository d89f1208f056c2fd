# core/gemini_client.py
import logging
from typing import Any, Dict, Optional
from config.settings import settings
from core.http import ClientFactory, default_client_factory, json_or_empty, raise_for_provider
from core.json_repair import safe_json_parse
from util.constants import ExternalURIs
from util.errors import ExternalApiError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "gemini"


def _candidate_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    return "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))


class GeminiClient:
    def __init__(
        self, http: Optional[ClientFactory] = None, model: Optional[str] = None
    ) -> None:
        self._http = http or default_client_factory
        self._model = model or settings.GEMINI_MODEL

    async def generate_text(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.7,
    ) -> str:
        config: Dict[str, Any] = {"temperature": temperature}
        if json_mode:
            config["responseMimeType"] = "application/json"
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": config,
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        url = f"{ExternalURIs.GEMINI_API}/{self._model}:generateContent"
        with timed(logger, "gemini.generate", model=self._model, json=json_mode):
            async with self._http() as client:
                res = await client.post(
                    url,
                    params={"key": settings.require("GEMINI_API_KEY")},
                    json=payload,
                )
        raise_for_provider(res, PROVIDER, "Gemini request failed")

        text = _candidate_text(json_or_empty(res))
        if not text:
            raise ExternalApiError("Empty response from Gemini", provider=PROVIDER)
        return text

    async def generate_json(self, prompt: str, *, system: Optional[str] = None) -> Any:
        """JSON-mode generation; truncated or fenced output goes through the repair fallback."""
        text = await self.generate_text(prompt, system=system, json_mode=True, temperature=0.4)
        value = safe_json_parse(text)
        if value is None:
            raise ExternalApiError("Gemini returned malformed JSON", provider=PROVIDER)
        return value
