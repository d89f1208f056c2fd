# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    TEST = "test"
    PROD = "prod"


class Platform(str, Enum):
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


class VideoTheme(str, Enum):
    SOCIAL_REEL = "social-reel"
    PRODUCT_SHOWCASE = "product-showcase"
    CINEMATIC = "cinematic"


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LISTENING = "listening"
    SPEAKING = "speaking"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    NOT_AUTHENTICATED = ErrorInfo("User not authenticated", status.HTTP_401_UNAUTHORIZED)
    INVALID_STATE = ErrorInfo("Invalid state parameter", status.HTTP_401_UNAUTHORIZED)
    MISSING_VERIFIER = ErrorInfo("Code verifier not found", status.HTTP_401_UNAUTHORIZED)
    TIKTOK_NOT_CONNECTED = ErrorInfo(
        "TikTok account not connected", status.HTTP_400_BAD_REQUEST
    )
    INSTAGRAM_NOT_CONNECTED = ErrorInfo(
        "Instagram account not connected", status.HTTP_400_BAD_REQUEST
    )
    TASK_NOT_FOUND = ErrorInfo(
        "Video generation task not found", status.HTTP_404_NOT_FOUND
    )
    GENERATION_NOT_FOUND = ErrorInfo(
        "Generation process not found or expired.", status.HTTP_404_NOT_FOUND
    )
    INVALID_MEDIA_SOURCE = ErrorInfo("Invalid data URI format", status.HTTP_400_BAD_REQUEST)
