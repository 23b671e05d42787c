# src/irys_forum/models/recommendation.py
"""Persisted daily recommendation rankings."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from irys_forum.db.session import Base
from irys_forum.db.time import utcnow


class DailyRecommendation(Base):
    """One ranked slot of a UTC day's recommendation list."""

    __tablename__ = "daily_recommendations"
    __table_args__ = (
        UniqueConstraint("day", "rank_position", name="uq_daily_recommendations_rank"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 1-based.
    rank_position: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    heat_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
