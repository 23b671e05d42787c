# src/irys_forum/schemas/follow.py
"""Follow graph schemas."""

from pydantic import BaseModel, model_validator


class FollowRequest(BaseModel):
    """Follow or unfollow request.

    Participants are given either by address or by user id.
    """

    follower_address: str | None = None
    following_address: str | None = None
    follower_id: str | None = None
    following_id: str | None = None

    @model_validator(mode="after")
    def _require_participants(self) -> "FollowRequest":
        if not (self.follower_address or self.follower_id):
            raise ValueError("follower_address or follower_id is required")
        if not (self.following_address or self.following_id):
            raise ValueError("following_address or following_id is required")
        return self


class FollowResponse(BaseModel):
    """Result of a follow or unfollow; counts refer to the followed user."""

    success: bool
    is_following: bool
    following_count: int
    followers_count: int


class FollowStats(BaseModel):
    """Follow-graph figures for one address."""

    address: str
    following_count: int
    followers_count: int
    mutual_follows_count: int


class FollowStatus(BaseModel):
    """Relationship between two addresses."""

    follower: str
    following: str
    is_following: bool
    is_followed_by: bool
    is_mutual: bool
