# src/irys_forum/models/__init__.py
"""SQLAlchemy models for the forum store."""

from .follow import Follow
from .like import CommentLike, PostLike
from .post import Comment, Post
from .recommendation import DailyRecommendation
from .used_transaction import TX_KINDS, UsedTransaction
from .user import User

__all__ = [
    "Follow",
    "CommentLike", "PostLike",
    "Comment", "Post",
    "DailyRecommendation",
    "TX_KINDS", "UsedTransaction",
    "User",
]
