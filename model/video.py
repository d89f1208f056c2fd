# model/video.py
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field
from model.job import JobStatus
from util.enums import VideoTheme

AspectRatio = Literal["16:9", "9:16", "1:1"]
VideoTaskStatus = Literal["pending", "processing", "completed", "failed"]


class Scene(BaseModel):
    id: Optional[str] = None
    imageUrl: str
    caption: Optional[str] = None
    isVideo: bool = False
    videoUrl: Optional[str] = None


class ProductShowcaseData(BaseModel):
    productName: str = ""
    productDescription: str = ""
    normalPrice: str = ""
    discountedPrice: str = ""
    cta: str = ""
    website: str = ""
    logoUrl: Optional[str] = None


class CinematicData(BaseModel):
    description: str = "Los Angeles, CA 90045\nCall (123) 555-1234 to arrange a viewing today"
    subtext: str = "Just Listed"
    brandName: str = "My Brand Realtors"
    name: str = "Elisabeth Parker"
    email: str = "elisabeth@mybrand.com"
    phoneNumber: str = "(123) 555-1234"


class VideoGenerationRequest(BaseModel):
    scenes: list[Scene]
    theme: VideoTheme = VideoTheme.SOCIAL_REEL
    aspectRatio: Optional[AspectRatio] = None
    productData: Optional[ProductShowcaseData] = None
    cinematicData: Optional[CinematicData] = None


class VideoGenerationStarted(BaseModel):
    success: bool
    generationId: Optional[str] = None
    error: Optional[str] = None


class VideoTask(BaseModel):
    id: str
    status: VideoTaskStatus = "pending"
    progress: int = Field(default=0, ge=0, le=100)
    videoUrl: Optional[str] = None
    error: Optional[str] = None
    theme: VideoTheme
    createdAt: datetime
    renderId: Optional[str] = None
    lastChecked: Optional[datetime] = None

    def job_status(self) -> JobStatus:
        return JobStatus.from_record(
            self.status, progress=self.progress, url=self.videoUrl, error=self.error
        )


class VideoStatusResponse(BaseModel):
    success: bool
    status: Optional[VideoTaskStatus] = None
    progress: int = 0
    videoUrl: Optional[str] = None
    error: Optional[str] = None


class RenderSubmission(BaseModel):
    """Creatomate's answer to a render request: the first render of the batch."""

    renderId: str
    status: str
    url: Optional[str] = None


class StabilityVideoRequest(BaseModel):
    image: str = Field(min_length=1)  # data URL or http(s) URL
    seed: int = 0
    cfgScale: float = 1.8
    motionBucketId: int = 127


class StabilityVideoResponse(BaseModel):
    id: str
    status: Literal["pending", "completed", "failed"]
    videoUrl: Optional[str] = None
    error: Optional[str] = None


class RunwayVideoRequest(BaseModel):
    prompt: str = Field(min_length=1)
    image: str = Field(min_length=1)


class RunwayVideoResponse(BaseModel):
    videoUrl: Optional[str] = None
    error: Optional[str] = None


class StabilityTask(BaseModel):
    """Stored record behind a Stability generation; id is ours, stabilityId is theirs."""

    id: str
    status: Literal["pending", "completed", "failed"] = "pending"
    stabilityId: Optional[str] = None
    videoUrl: Optional[str] = None
    error: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    def job_status(self) -> JobStatus:
        return JobStatus.from_record(self.status, url=self.videoUrl, error=self.error)
