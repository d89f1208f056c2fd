# service/website_generation_service.py
import json
import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple
from config.settings import settings
from core.background import BackgroundTasks, background
from core.gemini_client import GeminiClient
from core.pexels_client import PexelsClient
from model.generation import GenerationStatus, GenerationUpdates, ImagePreview
from repository.generation_repository import GenerationRepository
from util.errors import AppError

logger = logging.getLogger(__name__)

_IMG_PLACEHOLDER = re.compile(
    r"<img[^>]*id=[\"']([^\"']+)[\"'][^>]*alt=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE
)

# Image id fragment -> search suffix used when the alt text says too little
_SEARCH_HINTS: Tuple[Tuple[str, str], ...] = (
    ("hero", "hero banner"),
    ("about", "team office professional"),
    ("feature", "feature illustration"),
    ("service", "service professional"),
    ("product", "product showcase"),
    ("contact", "contact office"),
    ("gallery", "gallery showcase"),
    ("testimonial", "testimonial people professional"),
    ("logo", "logo icon"),
)


def extract_image_placeholders(html: str) -> List[Tuple[str, str]]:
    """(id, alt) for every <img> that carries both attributes, in document order."""
    return [(m.group(1), m.group(2)) for m in _IMG_PLACEHOLDER.finditer(html or "")]


def image_search_term(alt: str, image_id: str, prompt: str) -> str:
    term = re.sub("placeholder", "", alt, flags=re.IGNORECASE).strip()
    if len(term) < 5:
        suffix = next((hint for key, hint in _SEARCH_HINTS if key in image_id), "professional")
        term = f"{prompt} {suffix}"
    return f"{term} high quality professional"


def build_prompt(base: str, prompt: str, features: List[str], plan: Optional[Any] = None) -> str:
    parts = [base, f"Business description: {prompt}"]
    if features:
        parts.append("Requested features: " + ", ".join(features))
    if plan is not None:
        parts.append("Website plan:\n" + json.dumps(plan, indent=2))
    return "\n\n".join(parts)


class WebsiteGenerationService:
    """
    Website generation with incremental progress.

    Phases: starting -> planning -> code -> images -> completed (or failed).
    Every phase change is written to the status record; human-readable
    progress, thinking, code and image previews are appended to their own
    lists so a poller can read partial results while the job runs.
    """

    def __init__(
        self,
        generations: GenerationRepository,
        gemini: Optional[GeminiClient] = None,
        pexels: Optional[PexelsClient] = None,
        runner: BackgroundTasks = background,
    ) -> None:
        self._generations = generations
        self._gemini = gemini or GeminiClient()
        self._pexels = pexels or PexelsClient()
        self._runner = runner

    async def start(self, prompt: str, features: Optional[List[str]] = None) -> str:
        generation_id = str(uuid.uuid4())
        await self._generations.set_status(generation_id, "starting")
        await self._generations.push_status(generation_id, "Generation process initiated.")
        logger.info("website.start id=%s features=%d", generation_id, len(features or []))
        self._runner.spawn(
            self._run(generation_id, prompt, list(features or [])),
            name=f"website:{generation_id}",
        )
        return generation_id

    async def get_status(self, generation_id: str) -> GenerationStatus:
        record = await self._generations.get_status(generation_id)
        if record is None:
            return GenerationStatus(status="pending")
        return record

    async def get_updates(self, generation_id: str) -> GenerationUpdates:
        return await self._generations.updates(generation_id)

    # ---------------- internals ----------------

    async def _run(self, generation_id: str, prompt: str, features: List[str]) -> None:
        g = self._generations
        try:
            await g.set_status(generation_id, "planning")
            await g.push_status(generation_id, "Planning website structure...")
            plan = await self._gemini.generate_json(
                build_prompt(settings.WEBSITE_PLAN_PROMPT, prompt, features)
            )
            await g.push_thinking(generation_id, _plan_summary(plan))
            await g.push_code(generation_id, "json", json.dumps(plan))
            await g.push_status(generation_id, "Website plan ready.")

            await g.set_status(generation_id, "code")
            await g.push_status(generation_id, "Generating website code...")
            code = await self._gemini.generate_json(
                build_prompt(settings.WEBSITE_CODE_PROMPT, prompt, features, plan)
            )
            if not isinstance(code, dict):
                raise AppError("Generated code has an unexpected shape", 502)
            html = str(code.get("html") or "")
            css = str(code.get("css") or "")
            js = str(code.get("js") or "")
            for kind, value in (("html", html), ("css", css), ("js", js)):
                if value:
                    await g.push_code(generation_id, kind, value)
            await g.push_status(generation_id, "Code generation complete.")

            await g.set_status(generation_id, "images")
            await g.push_status(generation_id, "Replacing placeholder images with Pexels photos...")
            html = await self._replace_images(generation_id, html, prompt)
            await g.push_code(generation_id, "html", html)
            await g.push_status(generation_id, "Image replacement complete.")

            result: Dict[str, Any] = {
                "html": html,
                "css": css,
                "js": js,
                "plan": plan,
                "isPartial": False,
            }
            await g.set_status(generation_id, "completed", result=result)
            await g.push_status(generation_id, "Website generation process finished!")
            logger.info("website.completed id=%s", generation_id)
        except AppError as e:
            await self._fail(generation_id, e.message)
        except Exception as e:
            logger.exception("website.error id=%s", generation_id)
            await self._fail(generation_id, str(e) or "Unknown error during generation")

    async def _fail(self, generation_id: str, message: str) -> None:
        logger.warning("website.failed id=%s err=%s", generation_id, message)
        await self._generations.push_status(generation_id, f"Critical Error: {message}")
        await self._generations.set_status(generation_id, "failed", error=message)

    async def _replace_images(self, generation_id: str, html: str, prompt: str) -> str:
        """Best effort: a failed lookup keeps the placeholder and moves on."""
        if not settings.PEXELS_API_KEY:
            await self._generations.push_status(
                generation_id, "Pexels is not configured; keeping placeholder images."
            )
            return html

        placeholders = extract_image_placeholders(html)
        await self._generations.push_status(
            generation_id, f"Found {len(placeholders)} image placeholders to replace."
        )
        for image_id, alt in placeholders:
            term = image_search_term(alt, image_id, prompt)
            try:
                photos = await self._pexels.random_photos(term, 1)
            except AppError as e:
                logger.warning("website.image.failed id=%s img=%s err=%s", generation_id, image_id, e.message)
                await self._generations.push_status(
                    generation_id, f"Failed to replace image: {image_id}"
                )
                continue
            if not photos:
                continue
            url = photos[0].src.get("large") or photos[0].src.get("original") or photos[0].url
            await self._generations.push_image(generation_id, ImagePreview(id=image_id, url=url))
            tag = re.compile(rf"<img[^>]*id=[\"']{re.escape(image_id)}[\"'][^>]*>")
            html = tag.sub(
                lambda _: f'<img id="{image_id}" src="{url}" alt="{alt}" class="pexels-img">',
                html,
            )
            await self._generations.push_status(generation_id, f"Replaced image: {image_id}")
        return html


def _plan_summary(plan: Any) -> str:
    if not isinstance(plan, dict):
        return "Planned the website."
    pages = [p.get("name") for p in plan.get("pages") or [] if isinstance(p, dict)]
    lines = [f"Planning \"{plan.get('title') or 'Untitled'}\"."]
    if plan.get("targetAudience"):
        lines.append(f"Audience: {plan['targetAudience']}.")
    if pages:
        lines.append("Pages: " + ", ".join(str(p) for p in pages if p) + ".")
    return " ".join(lines)
