# service/social_account_service.py
import logging
from typing import Dict, List, Optional
from model.social import AccountStats, SocialAccountInfo, SocialMediaToken
from repository.token_repository import TokenRepository
from util.enums import Platform

logger = logging.getLogger(__name__)

_DISPLAY: Dict[Platform, Dict[str, str]] = {
    Platform.TIKTOK: {
        "label": "TikTok",
        "account_type": "Creator Account",
        "placeholder": "/icons/tiktok-profile-placeholder.png",
    },
    Platform.INSTAGRAM: {
        "label": "Instagram",
        "account_type": "Business Account",
        "placeholder": "/icons/instagram-profile-placeholder.png",
    },
}


def to_account_info(platform: Platform, token: Optional[SocialMediaToken]) -> SocialAccountInfo:
    if token is None:
        return SocialAccountInfo(platform=platform, connected=False)
    display = _DISPLAY[platform]
    return SocialAccountInfo(
        platform=platform,
        connected=True,
        username=token.username
        or f"{display['label']} User {token.platform_user_id[-4:]}",
        accountType=display["account_type"],
        connectedAt=token.created_at,
        lastUsed=token.last_used_at,
        profileImage=token.profile_image_url or display["placeholder"],
        stats=AccountStats(
            followers=token.follower_count or None, posts=token.post_count or None
        ),
    )


class SocialAccountService:
    def __init__(self, tokens: TokenRepository) -> None:
        self._tokens = tokens

    async def get_social_accounts(self, user_id: str) -> List[SocialAccountInfo]:
        """One entry per supported platform, connected or not, in a fixed order."""
        rows = await self._tokens.list_for_user(user_id)
        by_platform = {r.platform: r for r in rows}
        accounts = [to_account_info(p, by_platform.get(p)) for p in Platform]
        logger.info(
            "accounts.list connected=%d",
            sum(1 for a in accounts if a.connected),
        )
        return accounts

    async def disconnect(self, user_id: str, platform: Platform) -> bool:
        await self._tokens.delete(user_id, platform)
        logger.info("accounts.disconnect platform=%s", platform.value)
        return True

    async def update_usage(self, user_id: str, platform: Platform) -> None:
        """Bookkeeping only: failures are logged and never reach the caller."""
        try:
            await self._tokens.mark_used(user_id, platform)
        except Exception:
            logger.exception("accounts.usage.error platform=%s", platform.value)
