# core/creatomate_client.py
import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from config.settings import settings
from core.http import (
    ClientFactory,
    bearer,
    default_client_factory,
    json_or_empty,
    raise_for_poll,
    raise_for_provider,
)
from model.video import AspectRatio, CinematicData, ProductShowcaseData, RenderSubmission
from util.constants import ExternalURIs
from util.errors import ExternalApiError
from util.timing import timed

logger = logging.getLogger(__name__)

PROVIDER = "creatomate"

_DIMENSIONS: Dict[str, tuple[int, int]] = {
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
    "16:9": (1920, 1080),
}
_CONTROL_CHARS = re.compile(r"[\u0000-\u001F\u007F-\u009F]")

DEFAULT_OFFERS = ("-20%", "-25%", "-30%")
DEFAULT_CALL_TO_ACTION = "See you at\nwww.mybrand.com"


def sanitize_text(text: Optional[str]) -> str:
    return _CONTROL_CHARS.sub("", text or "").strip()


def dimensions(aspect_ratio: Optional[AspectRatio]) -> Dict[str, int]:
    width, height = _DIMENSIONS.get(aspect_ratio or "16:9", _DIMENSIONS["16:9"])
    return {"width": width, "height": height}


# ---------------- Template modifications ----------------


def showcase_modifications(
    image_url: str, data: ProductShowcaseData, logo_url: Optional[str] = None
) -> Dict[str, Any]:
    mods: Dict[str, Any] = {
        "Product-Image.source": image_url,
        "Product-Name.text": sanitize_text(data.productName) or "Product Name",
        "Product-Description.text": sanitize_text(data.productDescription)
        or "Product Description",
        "Normal-Price.text": f"${data.normalPrice or '99.99'}",
        "Discounted-Price.text": f"${data.discountedPrice or '79.99'}",
        "CTA.text": sanitize_text(data.cta) or "Shop Now",
        "Website.text": sanitize_text(data.website) or "www.example.com",
    }
    if logo_url:
        mods["Logo.source"] = logo_url
    return mods


def carousel_voiceover(offers: Sequence[str], call_to_action: str) -> str:
    first, second, third = offers[:3]
    return (
        f"Check out our latest products with amazing offers! {first} on our first item. "
        f"{second} on our second item. And don't miss {third} on our third item! "
        f"{call_to_action.replace(chr(10), ' ')}"
    )


def carousel_modifications(
    image_urls: Sequence[str],
    offers: Sequence[Optional[str]],
    *,
    call_to_action: str = DEFAULT_CALL_TO_ACTION,
    voiceover_text: Optional[str] = None,
) -> Dict[str, Any]:
    """Three product slides; offers fall back to the stock discounts."""
    if len(image_urls) < 3:
        raise ValueError("Invalid theme or insufficient scenes")
    texts = []
    for i, default in enumerate(DEFAULT_OFFERS):
        offer = offers[i] if i < len(offers) else None
        texts.append(sanitize_text(offer) or default)
    mods: Dict[str, Any] = {}
    for i in range(3):
        mods[f"Image-{i + 1}.source"] = image_urls[i]
        mods[f"Text-{i + 1}.text"] = texts[i]
    mods["Call-To-Action.text"] = call_to_action
    mods["Voiceover.text"] = voiceover_text or carousel_voiceover(texts, call_to_action)
    mods["Voiceover.voice"] = "alloy"
    return mods


def cinematic_modifications(
    video_urls: Sequence[str], picture_url: str, data: CinematicData
) -> Dict[str, Any]:
    if not video_urls:
        raise ValueError("No video scenes found for cinematic template")
    mods: Dict[str, Any] = {
        f"Video-{i + 1}.source": url for i, url in enumerate(video_urls)
    }
    mods.update(
        {
            "Picture.source": picture_url,
            "Description.text": data.description,
            "Subtext.text": data.subtext,
            "Brand-Name.text": data.brandName,
            "Name.text": data.name,
            "Email.text": data.email,
            "Phone-Number.text": data.phoneNumber,
        }
    )
    return mods


# ---------------- Client ----------------


class CreatomateClient:
    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    @staticmethod
    def _headers() -> Dict[str, str]:
        return {**bearer(settings.require("CREATOMATE_API_KEY")), "Accept": "application/json"}

    async def render_template(
        self, template_id: str, modifications: Dict[str, Any]
    ) -> RenderSubmission:
        payload = {
            "template_id": template_id,
            "modifications": modifications,
            "output_format": "mp4",
        }
        with timed(logger, "creatomate.render", template=template_id):
            async with self._http() as client:
                res = await client.post(
                    ExternalURIs.CREATOMATE_RENDERS, headers=self._headers(), json=payload
                )
        raise_for_provider(res, PROVIDER, f"API error: {res.status_code}")

        renders: List[Dict[str, Any]] = res.json() if res.content else []
        if not isinstance(renders, list) or not renders:
            raise ExternalApiError("Invalid API response", provider=PROVIDER)
        first = renders[0]
        logger.info(
            "creatomate.render.submitted id=%s status=%s", first.get("id"), first.get("status")
        )
        return RenderSubmission(
            renderId=str(first.get("id")),
            status=str(first.get("status") or "planned"),
            url=first.get("url"),
        )

    async def get_render(self, render_id: str) -> Dict[str, Any]:
        async with self._http() as client:
            res = await client.get(
                f"{ExternalURIs.CREATOMATE_RENDERS}/{render_id}", headers=self._headers()
            )
        raise_for_poll(res, PROVIDER, f"API error: {res.status_code}")
        return json_or_empty(res)
