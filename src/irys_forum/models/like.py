# src/irys_forum/models/like.py
"""Models capturing likes on posts and comments."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from irys_forum.db.session import Base
from irys_forum.db.time import utcnow


class PostLike(Base):
    """Per-user like on a post."""

    __tablename__ = "post_likes"
    __table_args__ = (Index("ix_post_likes_user", "user_address"),)

    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_address: Mapped[str] = mapped_column(String(42), primary_key=True)

    # Composite primary key prevents duplicate likes from the same user.

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class CommentLike(Base):
    """Per-user like on a comment."""

    __tablename__ = "comment_likes"
    __table_args__ = (Index("ix_comment_likes_user", "user_address"),)

    comment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("comments.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_address: Mapped[str] = mapped_column(String(42), primary_key=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
