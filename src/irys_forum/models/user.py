# src/irys_forum/models/user.py
"""User accounts keyed by wallet address."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from irys_forum.db.session import Base
from irys_forum.db.time import utcnow


class User(Base):
    """A forum participant identified by an EVM address.

    Rows are created lazily the first time an address posts, likes,
    follows or registers a username.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("posts_count >= 0", name="ck_users_posts_count"),
        CheckConstraint("comments_count >= 0", name="ck_users_comments_count"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    # Lower-cased 0x-prefixed address.
    address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    # Globally unique, NFC-normalised.
    username: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    has_username: Mapped[bool] = mapped_column(default=False, nullable=False)

    # Legacy credentials path; never populated by the Web3 flow.
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    posts_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reputation: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
