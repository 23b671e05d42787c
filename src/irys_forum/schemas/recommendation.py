# src/irys_forum/schemas/recommendation.py
"""Daily recommendation schemas."""

from datetime import date, datetime

from pydantic import BaseModel

from .post import PostOut


class DailyRecommendations(BaseModel):
    """Ranked posts for a UTC day plus refresh timing."""

    day: date
    posts: list[PostOut]
    last_refresh_time: datetime | None = None
    next_refresh_time: datetime
