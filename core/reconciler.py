# core/reconciler.py
"""
Maps provider status vocabularies onto one local outcome union and merges
incremental results into client-side state.

Each provider speaks its own dialect (Creatomate "succeeded", TikTok
"PUBLISH_SUCCESS", Graph API "FINISHED", ...). Mappers here are pure: raw
payload in, Pending | Succeeded | Failed out.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Final, Iterable, Mapping, Optional, Sequence, TypeVar
from core.polling import Failed, Pending, PollOutcome, Succeeded

SUCCESS_STATUSES: Final[frozenset[str]] = frozenset(
    {"succeeded", "completed", "finished", "publish_success"}
)
FAILURE_STATUSES: Final[frozenset[str]] = frozenset({"failed", "publish_failed", "error"})

CREATOMATE_PROGRESS: Final[dict[str, int]] = {
    "planned": 10,
    "waiting": 30,
    "transcribing": 50,
    "rendering": 70,
    "succeeded": 100,
}
CREATOMATE_DEFAULT_PROGRESS: Final[int] = 20


def classify_status(raw: Optional[str]) -> str:
    """Return "succeeded", "failed" or "pending" for any provider status word."""
    word = (raw or "").strip().lower()
    if word in SUCCESS_STATUSES:
        return "succeeded"
    if word in FAILURE_STATUSES:
        return "failed"
    return "pending"


def map_status(
    raw: Mapping[str, Any],
    *,
    status_key: str = "status",
    result_key: Optional[str] = None,
    error_keys: Sequence[str] = ("error",),
    progress_table: Optional[Mapping[str, int]] = None,
    default_progress: Optional[int] = None,
) -> PollOutcome:
    status = str(raw.get(status_key) or "")
    cls = classify_status(status)
    if cls == "succeeded":
        return Succeeded(result=raw.get(result_key) if result_key else dict(raw))
    if cls == "failed":
        reason = next((str(raw[k]) for k in error_keys if raw.get(k)), None)
        return Failed(reason=reason)
    if progress_table is not None:
        return Pending(progress=progress_table.get(status, default_progress))
    return Pending(progress=raw.get("progress"))


def map_creatomate(raw: Mapping[str, Any]) -> PollOutcome:
    return map_status(
        raw,
        result_key="url",
        error_keys=("error_message", "error"),
        progress_table=CREATOMATE_PROGRESS,
        default_progress=CREATOMATE_DEFAULT_PROGRESS,
    )


def map_tiktok(raw: Mapping[str, Any]) -> PollOutcome:
    return map_status(raw, error_keys=("fail_reason", "error_code"))


def map_instagram(raw: Mapping[str, Any]) -> PollOutcome:
    return map_status(raw, status_key="status_code", error_keys=("status",))


def map_runway(raw: Mapping[str, Any]) -> PollOutcome:
    return map_status(raw, result_key="video_url")


def map_stability(raw: Mapping[str, Any]) -> PollOutcome:
    return map_status(raw, result_key="video_url")


def map_video_task(raw: Mapping[str, Any]) -> PollOutcome:
    # Our own status endpoint; an unsuccessful lookup is a failure, not a pending tick.
    if not raw.get("success", True):
        return Failed(reason=raw.get("error") or "Failed to get video status")
    outcome = map_status(raw, result_key="videoUrl")
    if isinstance(outcome, Failed) and outcome.reason is None:
        return Failed(reason="Video generation failed")
    return outcome


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    # Checks may hand back the GenerationUpdates model itself
    if hasattr(raw, "model_dump"):
        return raw.model_dump(by_alias=True)
    return raw


def map_generation_updates(raw: Any) -> PollOutcome:
    raw = _as_mapping(raw)
    if raw.get("error"):
        return Failed(reason=str(raw["error"]))
    if raw.get("isComplete"):
        return Succeeded(result=dict(raw))
    return Pending()


# ---------------- Merges ----------------

T = TypeVar("T")


def _item_id(item: Any) -> Any:
    if isinstance(item, Mapping):
        return item.get("id")
    return getattr(item, "id", None)


def merge_by_id(existing: Sequence[T], incoming: Iterable[T]) -> list[T]:
    """Union by id. Earlier items keep their place; later duplicates are dropped."""
    out = list(existing)
    seen = {_item_id(i) for i in out}
    for item in incoming:
        key = _item_id(item)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


def merge_unique(existing: Sequence[str], incoming: Iterable[str]) -> list[str]:
    out = list(existing)
    seen = set(out)
    for msg in incoming:
        if msg not in seen:
            seen.add(msg)
            out.append(msg)
    return out


def merge_code_updates(
    previous: Mapping[str, Optional[str]], incoming: Mapping[str, Optional[str]]
) -> dict[str, Optional[str]]:
    keys = set(previous) | set(incoming)
    return {k: incoming.get(k) or previous.get(k) for k in keys}


# ---------------- Client state ----------------


@dataclass(frozen=True)
class VideoGenerationState:
    is_generating_video: bool = False
    video_progress: int = 0
    video_url: Optional[str] = None
    video_error: Optional[str] = None
    generation_id: Optional[str] = None


def apply_video_outcome(state: VideoGenerationState, outcome: PollOutcome) -> VideoGenerationState:
    if isinstance(outcome, Succeeded):
        return replace(
            state,
            is_generating_video=False,
            video_progress=100,
            video_url=outcome.result,
        )
    if isinstance(outcome, Failed):
        return replace(state, is_generating_video=False, video_error=outcome.reason)
    if outcome.progress is None:
        return state
    return replace(state, video_progress=outcome.progress)


@dataclass(frozen=True)
class GenerationUpdatesState:
    status_messages: tuple[str, ...] = ()
    thinking: Optional[str] = None
    code_updates: Mapping[str, Optional[str]] = field(default_factory=dict)
    image_previews: tuple[Any, ...] = ()
    is_complete: bool = False
    error: Optional[str] = None


def apply_generation_updates(state: GenerationUpdatesState, updates: Any) -> GenerationUpdatesState:
    updates = _as_mapping(updates)
    return replace(
        state,
        status_messages=tuple(
            merge_unique(state.status_messages, updates.get("statusMessages") or [])
        ),
        thinking=updates.get("thinking") or state.thinking,
        code_updates=merge_code_updates(state.code_updates, updates.get("codeUpdates") or {}),
        image_previews=tuple(
            merge_by_id(state.image_previews, updates.get("imagePreviewsUrls") or [])
        ),
        is_complete=state.is_complete or bool(updates.get("isComplete")),
        error=updates.get("error") or state.error,
    )
