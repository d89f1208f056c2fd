from typing import Final, NamedTuple


class InternalURIs:
    API = "/api"
    V1 = API + "/v1"

    VIDEO_GENERATE = V1 + "/video/generate"
    VIDEO_STATUS = V1 + "/video/{generation_id}/status"
    VIDEO_WATCH = V1 + "/video/{generation_id}/watch"
    STABILITY_GENERATE = V1 + "/video/stability"
    STABILITY_STATUS = V1 + "/video/stability/{generation_id}"
    RUNWAY_CREATE = V1 + "/video/runway"

    TIKTOK_AUTH = V1 + "/auth/tiktok"
    TIKTOK_CALLBACK = API + "/auth/tiktok/callback"
    INSTAGRAM_AUTH = V1 + "/auth/instagram"
    INSTAGRAM_CALLBACK = API + "/auth/instagram/callback"
    SHARE_TIKTOK = V1 + "/share/tiktok"
    SHARE_INSTAGRAM = V1 + "/share/instagram"
    SOCIAL_ACCOUNTS = V1 + "/social-accounts"
    SOCIAL_ACCOUNT = V1 + "/social-accounts/{platform}"

    GENERATION_START = V1 + "/generation"
    GENERATION_STATUS = API + "/generation-status"
    GENERATION_UPDATES = API + "/generation-updates"
    GENERATION_WATCH = V1 + "/generation/{generation_id}/watch"

    REALTIME_SESSION = API + "/realtime-session"
    ASSISTANT_FUNCTION_CALL = V1 + "/assistant/function-call"
    CART = V1 + "/cart/{session_id}"

    PEXELS_SEARCH = V1 + "/media/pexels/search"

    # Front-end pages the OAuth callbacks land on
    VIDEO_GENERATOR_PAGE = "/video-generator"
    CHECKOUT_PAGE = "/store/cart"


class ExternalURIs:
    TIKTOK_AUTHORIZE = "https://www.tiktok.com/v2/auth/authorize/"
    TIKTOK_TOKEN = "https://open.tiktokapis.com/v2/oauth/token/"
    TIKTOK_INBOX_INIT = "https://open.tiktokapis.com/v2/post/publish/inbox/video/init/"
    TIKTOK_DIRECT_INIT = "https://open.tiktokapis.com/v2/post/publish/video/init/"
    TIKTOK_STATUS = "https://open.tiktokapis.com/v2/post/publish/status/fetch/"
    TIKTOK_VIDEO_URL = "https://www.tiktok.com/@{open_id}/video/{item_id}"

    GRAPH_API = "https://graph.facebook.com/v17.0"
    FACEBOOK_OAUTH_DIALOG = "https://www.facebook.com/v17.0/dialog/oauth"
    INSTAGRAM_POST_URL = "https://www.instagram.com/p/{post_id}/"

    CREATOMATE_RENDERS = "https://api.creatomate.com/v1/renders"
    RUNWAY_VIDEO = "https://api.runwayml.com/v1/video"
    STABILITY_IMAGE_TO_VIDEO = "https://api.stability.ai/v2beta/image-to-video"
    PEXELS_API = "https://api.pexels.com/v1"
    GEMINI_API = "https://generativelanguage.googleapis.com/v1beta/models"

    OPENAI_REALTIME = "https://api.openai.com/v1/realtime"
    OPENAI_REALTIME_SESSIONS = OPENAI_REALTIME + "/sessions"


class PollProfile(NamedTuple):
    name: str
    interval_ms: int
    max_attempts: int


MAX_POLL_ATTEMPTS: Final[int] = 30

TIKTOK_PUBLISH: Final[PollProfile] = PollProfile("tiktok.publish", 2000, MAX_POLL_ATTEMPTS)
INSTAGRAM_PUBLISH: Final[PollProfile] = PollProfile(
    "instagram.publish", 2000, MAX_POLL_ATTEMPTS
)
CREATOMATE_RENDER: Final[PollProfile] = PollProfile(
    "creatomate.render", 3000, MAX_POLL_ATTEMPTS
)
RUNWAY_VIDEO: Final[PollProfile] = PollProfile("runway.video", 5000, MAX_POLL_ATTEMPTS)
STABILITY_VIDEO: Final[PollProfile] = PollProfile(
    "stability.video", 10000, MAX_POLL_ATTEMPTS
)
VIDEO_GENERATION: Final[PollProfile] = PollProfile(
    "video.generation", 20000, MAX_POLL_ATTEMPTS
)
# A plan pass, a code pass and the image lookups; watchers wait up to 5 minutes
WEBSITE_GENERATION: Final[PollProfile] = PollProfile(
    "website.generation", 10000, MAX_POLL_ATTEMPTS
)

# Creatomate templates
PRODUCT_SHOWCASE_TEMPLATE_ID: Final[str] = "4cc27f0e-4641-44c2-a768-6b757225e11f"
PRODUCT_CAROUSEL_TEMPLATE_ID: Final[str] = "543a4dfc-2286-45f1-acf5-86070a961708"

TIKTOK_SCOPES: Final[tuple[str, ...]] = ("user.info.basic", "video.upload", "video.publish")
INSTAGRAM_SCOPES: Final[tuple[str, ...]] = (
    "instagram_basic",
    "instagram_content_publish",
    "pages_show_list",
    "business_management",
)
INSTAGRAM_TOKEN_TTL_SECONDS: Final[int] = 60 * 24 * 60 * 60

REALTIME_VOICES: Final[tuple[str, ...]] = (
    "alloy", "echo", "fable", "onyx", "nova", "shimmer", "sage", "ballad", "coral", "verse",
)
