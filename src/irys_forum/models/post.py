# src/irys_forum/models/post.py
"""SQLAlchemy models for posts and their comments."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from irys_forum.db.session import Base
from irys_forum.db.time import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Post(Base):
    """Top-level forum content."""

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint("likes >= 0", name="ck_posts_likes"),
        CheckConstraint("comments_count >= 0", name="ck_posts_comments_count"),
        Index("ix_posts_created_at", "created_at"),
        Index("ix_posts_author_hash", "author_address", "content_hash"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    author_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    author_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # SHA-256 of the body; drives the duplicate-content window.
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)

    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    chain_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    chain_post_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class Comment(Base):
    """Reply attached to a post, optionally nested under another comment."""

    __tablename__ = "comments"
    __table_args__ = (
        CheckConstraint("likes >= 0", name="ck_comments_likes"),
        Index("ix_comments_post_created", "post_id", "created_at"),
        Index("ix_comments_author_hash", "author_address", "post_id", "content_hash"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Back-reference only; the tree is assembled at read time.
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("comments.id", ondelete="SET NULL"),
        nullable=True,
    )
    author_address: Mapped[str] = mapped_column(String(42), nullable=False)
    author_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    chain_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
