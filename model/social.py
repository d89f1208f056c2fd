# model/social.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from util.enums import Platform


class TikTokShareOptions(BaseModel):
    videoUrl: str = Field(min_length=1)
    caption: str = ""
    asDraft: bool = True


class InstagramShareOptions(BaseModel):
    videoUrl: str = Field(min_length=1)
    thumbnailUrl: Optional[str] = None
    caption: str = ""
    asReel: bool = True
    shareToFeed: bool = True


class ShareResult(BaseModel):
    success: bool
    postId: Optional[str] = None
    postUrl: Optional[str] = None
    error: Optional[str] = None


class SocialMediaToken(BaseModel):
    """One row of the social_media_tokens table, keyed by (user_id, platform)."""

    user_id: str
    platform: Platform
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    platform_user_id: str
    username: Optional[str] = None
    profile_image_url: Optional[str] = None
    follower_count: Optional[int] = None
    post_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class AccountStats(BaseModel):
    followers: Optional[int] = None
    posts: Optional[int] = None


class SocialAccountInfo(BaseModel):
    platform: Platform
    connected: bool
    username: Optional[str] = None
    accountType: Optional[str] = None
    connectedAt: Optional[datetime] = None
    lastUsed: Optional[datetime] = None
    profileImage: Optional[str] = None
    stats: Optional[AccountStats] = None


class OAuthStart(BaseModel):
    """What the initiate step hands back: where to send the browser and what to pin in cookies."""

    auth_url: str
    state: str
    code_verifier: Optional[str] = None
