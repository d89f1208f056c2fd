# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "studio"

VIDEO_TASKS: Final[str] = f"{ROOT}:video-tasks"
STABILITY_TASKS: Final[str] = f"{ROOT}:stability-video"
GENERATIONS: Final[str] = f"{ROOT}:generation"  # + :{id}, :{id}:status, :{id}:code:html ...
OAUTH_STATES: Final[str] = f"{ROOT}:oauth-state"
CARTS: Final[str] = f"{ROOT}:carts"
