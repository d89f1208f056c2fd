# model/generation.py
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

GenerationPhase = Literal[
    "pending",
    "starting",
    "planning",
    "code",
    "content",
    "images",
    "generate-images",
    "integrate",
    "analysis",
    "finalize",
    "completed",
    "failed",
]


class WebsiteGenerationRequest(BaseModel):
    prompt: str = Field(min_length=1)
    features: list[str] = Field(default_factory=list)


class WebsiteGenerationStarted(BaseModel):
    generationId: str


class GenerationStatus(BaseModel):
    status: GenerationPhase
    result: Optional[Any] = None
    error: Optional[str] = None


class ImagePreview(BaseModel):
    id: str
    url: str  # http(s) URL or data URI


class CodeUpdate(BaseModel):
    html: Optional[str] = None
    css: Optional[str] = None
    js: Optional[str] = None
    json_: Optional[str] = Field(default=None, alias="json")

    model_config = {"populate_by_name": True}


class GenerationUpdates(BaseModel):
    statusMessages: list[str] = Field(default_factory=list)
    thinking: Optional[str] = None
    codeUpdates: CodeUpdate = Field(default_factory=CodeUpdate)
    imagePreviewsUrls: list[ImagePreview] = Field(default_factory=list)
    isComplete: bool = False
    error: Optional[str] = None  # set once the generation failed; terminal
