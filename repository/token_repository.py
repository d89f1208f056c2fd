# repository/token_repository.py
import logging
from datetime import datetime, timezone
from typing import Final, List, Optional
from core.supabase_client import SupabaseClient
from model.social import SocialMediaToken
from util.enums import Platform

logger = logging.getLogger(__name__)

TABLE: Final[str] = "social_media_tokens"
ON_CONFLICT: Final[str] = "user_id,platform"


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


class TokenRepository:
    """
    Platform tokens live in Supabase (`social_media_tokens`), one row per
    (user_id, platform). Writes are upserts on that pair.
    """

    def __init__(self, supabase: Optional[SupabaseClient] = None) -> None:
        self._db = supabase or SupabaseClient()

    async def store(
        self,
        user_id: str,
        platform: Platform,
        *,
        access_token: str,
        platform_user_id: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        username: Optional[str] = None,
    ) -> None:
        row = {
            "user_id": user_id,
            "platform": platform.value,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": _iso(expires_at),
            "platform_user_id": platform_user_id,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if username:
            row["username"] = username
        await self._db.upsert(TABLE, row, on_conflict=ON_CONFLICT)
        logger.info("tokens.stored platform=%s", platform.value)

    async def get(self, user_id: str, platform: Platform) -> Optional[SocialMediaToken]:
        rows = await self._db.select(TABLE, {"user_id": user_id, "platform": platform.value})
        if not rows:
            return None
        return SocialMediaToken.model_validate(rows[0])

    async def list_for_user(self, user_id: str) -> List[SocialMediaToken]:
        rows = await self._db.select(TABLE, {"user_id": user_id})
        return [SocialMediaToken.model_validate(r) for r in rows]

    async def delete(self, user_id: str, platform: Platform) -> None:
        await self._db.delete(TABLE, {"user_id": user_id, "platform": platform.value})

    async def mark_used(self, user_id: str, platform: Platform) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self._db.update(
            TABLE,
            {"user_id": user_id, "platform": platform.value},
            {"last_used_at": now, "updated_at": now},
        )
