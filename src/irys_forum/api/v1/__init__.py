"""Version 1 API endpoints."""

from .endpoints import (
    comments_router,
    follows_router,
    posts_router,
    recommendations_router,
    stats_router,
    system_router,
    tasks_router,
    usernames_router,
    users_router,
)

__all__ = [
    "posts_router",
    "comments_router",
    "users_router",
    "usernames_router",
    "follows_router",
    "recommendations_router",
    "tasks_router",
    "stats_router",
    "system_router",
]
