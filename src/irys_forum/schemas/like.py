# src/irys_forum/schemas/like.py
"""Like toggle schemas."""

from pydantic import BaseModel, Field


class LikeRequest(BaseModel):
    """Toggle a like for the given address."""

    user_address: str = Field(..., description="Address of the liking user")


class LikeResponse(BaseModel):
    """Counter and like state after a toggle."""

    success: bool = True
    likes: int
    is_liked: bool
