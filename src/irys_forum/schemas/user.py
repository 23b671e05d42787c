# src/irys_forum/schemas/user.py
"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserOut(BaseModel):
    """Public user record."""

    id: str
    address: str
    name: str | None = None
    avatar: str | None = None
    bio: str | None = None
    has_username: bool = False
    posts_count: int = 0
    comments_count: int = 0
    reputation: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserOut):
    """User record enriched with follow-graph figures relative to a viewer."""

    following_count: int = 0
    followers_count: int = 0
    mutual_follows_count: int = 0
    is_following: bool = False
    is_followed_by: bool = False
    is_mutual: bool = False
    is_self: bool = False


class BioUpdate(BaseModel):
    """Schema for updating a profile bio."""

    address: str
    bio: str = Field(..., max_length=2000)


class AvatarResponse(BaseModel):
    """Result of an avatar upload."""

    success: bool = True
    avatar_url: str
