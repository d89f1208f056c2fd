# model/job.py
from datetime import datetime, timezone
from enum import Enum
from typing import Final, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from util.constants import PollProfile


class JobKind(str, Enum):
    video_render = "video-render"
    social_publish = "social-publish"
    website_generation = "website-generation"


class JobState(str, Enum):
    pending = "pending"
    processing = "processing"
    succeeded = "succeeded"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.succeeded, JobState.failed)


class Job(BaseModel):
    """
    Handle for one externally-owned asynchronous job.
    Frozen: the poller keeps its own attempt counter.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: JobKind
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    poll_interval_ms: int = Field(ge=0)
    max_attempts: int = Field(ge=1)

    @classmethod
    def from_profile(cls, job_id: str, kind: JobKind, profile: PollProfile) -> "Job":
        return cls(
            id=job_id,
            kind=kind,
            poll_interval_ms=profile.interval_ms,
            max_attempts=profile.max_attempts,
        )


class JobStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: JobState
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    result_url: Optional[str] = None
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def _terminal_fields(self) -> "JobStatus":
        if self.result_url is not None and self.state != JobState.succeeded:
            raise ValueError("result_url is only allowed when state is succeeded")
        if self.error_message is not None and self.state != JobState.failed:
            raise ValueError("error_message is only allowed when state is failed")
        return self

    @classmethod
    def from_record(
        cls,
        status: str,
        *,
        progress: Optional[int] = None,
        url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> "JobStatus":
        """Stored task records say "completed" where jobs say "succeeded"."""
        state = RECORD_STATES.get(status, JobState.pending)
        return cls(
            state=state,
            progress=progress,
            result_url=url if state == JobState.succeeded else None,
            error_message=error if state == JobState.failed else None,
        )


RECORD_STATES: Final[dict[str, JobState]] = {
    "pending": JobState.pending,
    "processing": JobState.processing,
    "completed": JobState.succeeded,
    "failed": JobState.failed,
}
