# model/api.py
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


class OkResponse(BaseModel):
    ok: bool


class PexelsSearchParams(BaseModel):
    query: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    perPage: int = Field(default=15, ge=1, le=80)
    orientation: Optional[Literal["landscape", "portrait", "square"]] = None
    size: Optional[Literal["large", "medium", "small"]] = None
    color: Optional[str] = None


class PexelsPhoto(BaseModel):
    id: int
    width: int
    height: int
    url: str
    photographer: str = ""
    photographer_url: str = ""
    avg_color: Optional[str] = None
    src: dict[str, str] = Field(default_factory=dict)
    alt: str = ""


class PexelsSearchResponse(BaseModel):
    total_results: int = 0
    page: int = 1
    per_page: int = 15
    photos: list[PexelsPhoto] = Field(default_factory=list)
    next_page: Optional[str] = None
    prev_page: Optional[str] = None


WatchEventType = Literal["state", "error", "done"]


class WatchEvent(BaseModel):
    """One NDJSON line on a watch stream."""

    type: WatchEventType
    payload: dict[str, Any]
