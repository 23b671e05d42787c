# src/irys_forum/schemas/stats.py
"""Forum-wide statistics schemas."""

from pydantic import BaseModel


class GlobalStats(BaseModel):
    """Aggregate counters across the forum."""

    total_users: int
    total_posts: int
    total_comments: int
    total_likes: int


class ActiveUser(BaseModel):
    """Entry in the active-users ranking."""

    address: str
    name: str | None = None
    avatar: str | None = None
    posts_count: int
    comments_count: int
    reputation: int
