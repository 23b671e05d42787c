# src/irys_forum/schemas/__init__.py
"""Pydantic schemas for request validation and API responses."""

from .comment import CommentCreate, CommentNode, CommentOut, CommentSubmit
from .follow import FollowRequest, FollowResponse, FollowStats, FollowStatus
from .like import LikeRequest, LikeResponse
from .post import PostCreate, PostOut
from .recommendation import DailyRecommendations
from .stats import ActiveUser, GlobalStats
from .task import TaskAccepted, TaskOut
from .user import AvatarResponse, BioUpdate, UserOut, UserProfile
from .username import (
    UsernameAvailability,
    UsernameLookup,
    UsernameRegister,
    UsernameResponse,
    UsernameSync,
)

__all__ = [
    "CommentCreate", "CommentNode", "CommentOut", "CommentSubmit",
    "FollowRequest", "FollowResponse", "FollowStats", "FollowStatus",
    "LikeRequest", "LikeResponse",
    "PostCreate", "PostOut",
    "DailyRecommendations",
    "ActiveUser", "GlobalStats",
    "TaskAccepted", "TaskOut",
    "AvatarResponse", "BioUpdate", "UserOut", "UserProfile",
    "UsernameAvailability", "UsernameLookup", "UsernameRegister", "UsernameResponse",
    "UsernameSync",
]
