# routes.py
from fastapi import FastAPI
from controller.assistant_controller import assistant_router
from controller.generation_controller import generation_router
from controller.media_controller import media_router
from controller.social_controller import social_router
from controller.video_controller import video_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(video_router)
    app.include_router(social_router)
    app.include_router(generation_router)
    app.include_router(assistant_router)
    app.include_router(media_router)
