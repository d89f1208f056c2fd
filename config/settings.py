# config/settings.py
import os
import sys
from typing import Optional
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment
from util.errors import ConfigurationError
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")

INTEGRATION_KEYS: dict[str, tuple[str, ...]] = {
    "supabase": ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"),
    "tiktok": ("TIKTOK_API_KEY", "TIKTOK_API_SECRET"),
    "instagram": ("INSTAGRAM_APP_ID", "INSTAGRAM_APP_SECRET"),
    "creatomate": ("CREATOMATE_API_KEY",),
    "runway": ("RUNWAY_API_KEY",),
    "stability": ("STABILITY_API_KEY",),
    "pexels": ("PEXELS_API_KEY",),
    "gemini": ("GEMINI_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", validation_alias="REDIS_URL"
    )
    PERSISTENCE_TTL_SECONDS: int = Field(
        default=2 * 60 * 60, validation_alias="PERSISTENCE_TTL_SECONDS"
    )

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(
        default="http://localhost:3000", validation_alias="ALLOWED_ORIGIN"
    )
    RATE_LIMIT_TIMES: int = Field(default=60, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # Public host of the front-end; OAuth redirect URIs are built from it
    APP_HOST: str = Field(
        default="http://localhost:3000", validation_alias="NEXT_PUBLIC_APP_HOST"
    )

    # Supabase
    SUPABASE_URL: Optional[str] = Field(
        default=None, validation_alias="NEXT_PUBLIC_SUPABASE_URL"
    )
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(
        default=None, validation_alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    STORAGE_BUCKET: str = "social-media-assets"
    STORAGE_FILE_SIZE_LIMIT: int = 100 * 1024 * 1024

    # Social platforms
    TIKTOK_API_KEY: Optional[str] = Field(default=None, validation_alias="TIKTOK_API_KEY")
    TIKTOK_API_SECRET: Optional[str] = Field(
        default=None, validation_alias="TIKTOK_API_SECRET"
    )
    INSTAGRAM_APP_ID: Optional[str] = Field(
        default=None, validation_alias="INSTAGRAM_APP_ID"
    )
    INSTAGRAM_APP_SECRET: Optional[str] = Field(
        default=None, validation_alias="INSTAGRAM_APP_SECRET"
    )
    OAUTH_STATE_TTL_SECONDS: int = 60 * 10

    # Generation providers
    GEMINI_API_KEY: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    GEMINI_MODEL: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
    CREATOMATE_API_KEY: Optional[str] = Field(
        default=None, validation_alias="CREATOMATE_API_KEY"
    )
    CREATOMATE_CINEMATIC_TEMPLATE_ID: Optional[str] = Field(
        default=None, validation_alias="CREATOMATE_CINEMATIC_TEMPLATE_ID"
    )
    RUNWAY_API_KEY: Optional[str] = Field(default=None, validation_alias="RUNWAY_API_KEY")
    STABILITY_API_KEY: Optional[str] = Field(
        default=None, validation_alias="STABILITY_API_KEY"
    )
    PEXELS_API_KEY: Optional[str] = Field(default=None, validation_alias="PEXELS_API_KEY")

    # Realtime assistant
    OPENAI_API_KEY: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    REALTIME_MODEL: str = "gpt-4o-realtime-preview"
    REALTIME_TRANSCRIBE_MODEL: str = "gpt-4o-transcribe"

    # Polling
    POLL_MAX_CONSECUTIVE_ERRORS: int = Field(
        default=3, validation_alias="POLL_MAX_CONSECUTIVE_ERRORS"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )

    # Logging knobs
    LOGGER_NAME: str = "storefront-studio"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")
    # "core.polling=DEBUG,repository=WARNING"
    LOG_LEVEL_OVERRIDES: str = Field(default="", validation_alias="LOG_LEVEL_OVERRIDES")

    # Prompts
    REALTIME_INSTRUCTIONS: str = (
        "You are a helpful e-commerce assistant. You can help users find products, "
        "add them to their cart, initiate checkout, start a visualization, add products "
        "to the visualization, and change the color of a product. Use the provided tools "
        "to fulfill user requests. Reference the knowledge base to answer questions about "
        "products and policies."
    )

    WEBSITE_PLAN_PROMPT: str = (
        "You are a senior web designer. Plan a multi-page marketing website for the "
        "business described below.\n"
        "\n"
        "Return JSON ONLY with this shape:\n"
        '{"title":"...","description":"...","targetAudience":"...",'
        '"pages":[{"id":"home","name":"Home","sections":[{"id":"hero","name":"Hero",'
        '"purpose":"...","content":"...","hasImage":true,"imageDescription":"..."}]}],'
        '"colorScheme":{"primary":"#...","secondary":"#...","accent":"#...",'
        '"background":"#...","text":"#..."},'
        '"typography":{"headingFont":"...","bodyFont":"..."},'
        '"features":["..."],"layout":"...","interactiveElements":["..."]}\n'
        "- No code fences.\n"
    )

    WEBSITE_CODE_PROMPT: str = (
        "You are an expert front-end developer. Using the website plan below, write a "
        "single-page responsive website.\n"
        '- Return JSON ONLY: {"html":"...","css":"...","js":"..."}\n'
        "- Use plain HTML, CSS and vanilla JavaScript.\n"
        "- No code fences.\n"
    )

    def require(self, name: str) -> str:
        """
        Return a configured value or raise ConfigurationError naming it.
        Integration keys are checked here, at first use, not at startup.
        """
        value = getattr(self, name, None)
        if value in (None, ""):
            field = type(self).model_fields.get(name)
            env_name = (field.validation_alias if field else None) or name
            _log.error("config.missing name=%s", env_name)
            raise ConfigurationError(f"Missing required environment variable: {env_name}")
        return str(value)

    def missing_integrations(self) -> list[str]:
        """Integrations with at least one unset key; reported at startup, never fatal."""
        return [
            name
            for name, keys in INTEGRATION_KEYS.items()
            if any(getattr(self, k, None) in (None, "") for k in keys)
        ]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == Environment.PROD


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
