# src/irys_forum/models/follow.py
"""Directed follow edges between addresses."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from irys_forum.db.session import Base
from irys_forum.db.time import utcnow


class Follow(Base):
    """``follower_address`` follows ``following_address``."""

    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_address", "following_address", name="uq_follows_pair"),
        CheckConstraint("follower_address <> following_address", name="ck_follows_not_self"),
        Index("ix_follows_following", "following_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    follower_address: Mapped[str] = mapped_column(String(42), nullable=False)
    following_address: Mapped[str] = mapped_column(String(42), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
