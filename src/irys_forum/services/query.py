"""Read paths: pagination, like-status overlay, comment trees and rankings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from irys_forum.core.errors import NotFound
from irys_forum.core.settings import Settings
from irys_forum.core.validation import normalize_address, page_bounds
from irys_forum.db.time import as_utc, next_utc_midnight, utcnow
from irys_forum.repositories import ForumRepository
from irys_forum.schemas import (
    ActiveUser,
    CommentNode,
    CommentOut,
    DailyRecommendations,
    GlobalStats,
    PostOut,
)

from .cache import PostCache

logger = logging.getLogger(__name__)

LIKE_WEIGHT = 3.0
COMMENT_WEIGHT = 2.0
VIEW_WEIGHT = 0.1

# (maximum age in hours, multiplier); anything older gets FINAL_DECAY.
DECAY_STEPS: tuple[tuple[float, float], ...] = ((24.0, 1.0), (48.0, 0.8), (72.0, 0.6))
FINAL_DECAY = 0.4

DEFAULT_ACTIVE_USERS = 10
DEFAULT_USER_POSTS = 20


def recency_decay(created_at: datetime, now: datetime) -> float:
    """Return the recency multiplier for a post of the given age."""
    age_hours = (as_utc(now) - as_utc(created_at)).total_seconds() / 3600
    for max_hours, factor in DECAY_STEPS:
        if age_hours <= max_hours:
            return factor
    return FINAL_DECAY


def heat_score(post: PostOut, now: datetime) -> float:
    """Combine engagement and recency into a single ranking value."""
    engagement = (
        post.likes * LIKE_WEIGHT
        + post.comments_count * COMMENT_WEIGHT
        + post.views * VIEW_WEIGHT
    )
    return engagement * recency_decay(post.created_at, now)


def build_comment_tree(comments: list[CommentOut]) -> list[CommentNode]:
    """Resolve parent back-references into nested nodes.

    Comments whose parent is missing from ``comments`` become roots, so a
    partial list never drops replies. Input order is kept within each level.
    """
    nodes = {comment.id: CommentNode(**comment.model_dump()) for comment in comments}
    roots: list[CommentNode] = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.replies.append(node)
    return roots


class QueryService:
    """Serves listings from the cache or the store and annotates them per viewer."""

    def __init__(
        self,
        repository: ForumRepository,
        cache: PostCache,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.settings = settings
        self.clock = clock

    def _page(self, limit: int | None, offset: int, default: int) -> tuple[int, int]:
        return page_bounds(limit, offset, default=default, max_size=self.settings.max_page_size)

    @staticmethod
    def _viewer(viewer: str | None) -> str | None:
        return normalize_address(viewer) if viewer else None

    def _overlay_posts(self, posts: list[PostOut], viewer: str | None) -> list[PostOut]:
        viewer = self._viewer(viewer)
        if viewer is None or not posts:
            return posts
        liked = self.repository.liked_post_ids(viewer, [post.id for post in posts])
        return [post.model_copy(update={"is_liked_by_user": post.id in liked}) for post in posts]

    def _overlay_comments(self, comments: list[CommentOut], viewer: str | None) -> list[CommentOut]:
        viewer = self._viewer(viewer)
        if viewer is None or not comments:
            return comments
        liked = self.repository.liked_comment_ids(viewer, [comment.id for comment in comments])
        return [
            comment.model_copy(update={"is_liked_by_user": comment.id in liked})
            for comment in comments
        ]

    # --- posts ------------------------------------------------------------------
    def list_posts(
        self, limit: int | None = None, offset: int = 0, viewer: str | None = None
    ) -> list[PostOut]:
        """Return a newest-first page; a short page means there are no more."""
        limit, offset = self._page(limit, offset, self.settings.default_posts_page_size)
        posts = self.cache.get_posts(limit, offset)
        if posts is None:
            generation = self.cache.posts_generation()
            posts = self.repository.list_posts(limit, offset)
            self.cache.set_posts(limit, offset, posts, generation=generation)
        return self._overlay_posts(posts, viewer)

    def get_post(self, post_id: str, viewer: str | None = None) -> PostOut:
        """Return a single post and count the view."""
        self.repository.record_view(post_id)
        post = self.repository.get_post(post_id)
        if post is None:
            raise NotFound("Post not found")
        return self._overlay_posts([post], viewer)[0]

    def user_posts(
        self, address: str, limit: int | None = None, offset: int = 0, viewer: str | None = None
    ) -> list[PostOut]:
        limit, offset = self._page(limit, offset, DEFAULT_USER_POSTS)
        posts = self.repository.list_posts_by_author(normalize_address(address), limit, offset)
        return self._overlay_posts(posts, viewer)

    # --- comments ---------------------------------------------------------------
    def list_comments(
        self, post_id: str, limit: int | None = None, offset: int = 0, viewer: str | None = None
    ) -> list[CommentOut]:
        """Return an oldest-first page of a post's comments."""
        limit, offset = self._page(limit, offset, self.settings.default_comments_page_size)
        comments = self.cache.get_comments(post_id, limit, offset)
        if comments is None:
            generation = self.cache.comments_generation(post_id)
            if self.repository.get_post(post_id) is None:
                raise NotFound("Post not found")
            comments = self.repository.list_comments(post_id, limit, offset)
            self.cache.set_comments(post_id, limit, offset, comments, generation=generation)
        return self._overlay_comments(comments, viewer)

    def comment_tree(self, post_id: str, viewer: str | None = None) -> list[CommentNode]:
        """Return every comment of a post nested under its parent."""
        if self.repository.get_post(post_id) is None:
            raise NotFound("Post not found")
        comments = self.repository.list_comments(post_id, None, 0)
        return build_comment_tree(self._overlay_comments(comments, viewer))

    # --- recommendations --------------------------------------------------------
    def _rank_candidates(self, now: datetime) -> list[tuple[str, float]]:
        since = now - timedelta(days=self.settings.recommendation_window_days)
        scored = [(post, heat_score(post, now)) for post in self.repository.list_posts_since(since)]
        scored = [(post, heat) for post, heat in scored if heat > 0]
        scored.sort(key=lambda item: (item[1], as_utc(item[0].created_at)), reverse=True)
        return [(post.id, heat) for post, heat in scored[: self.settings.recommendation_count]]

    def daily_recommendations(self, viewer: str | None = None) -> DailyRecommendations:
        """Return today's ranking, computing and persisting it on first use."""
        now = self.clock()
        today = as_utc(now).date()
        ranked = self.repository.recommendations_for_day(today)
        if not ranked:
            entries = self._rank_candidates(now)
            if entries:
                stored = self.repository.store_recommendations(today, entries, now)
                logger.info(
                    "Daily recommendations for %s %s (%d posts)",
                    today,
                    "refreshed" if stored else "already refreshed concurrently",
                    len(entries),
                )
                ranked = self.repository.recommendations_for_day(today)

        posts = [slot.post.model_copy(update={"heat_score": slot.heat_score}) for slot in ranked]
        return DailyRecommendations(
            day=today,
            posts=self._overlay_posts(posts, viewer),
            last_refresh_time=min((slot.created_at for slot in ranked), default=None),
            next_refresh_time=next_utc_midnight(now),
        )

    # --- stats ------------------------------------------------------------------
    def global_stats(self) -> GlobalStats:
        return self.repository.global_stats()

    def active_users(self, limit: int | None = None) -> list[ActiveUser]:
        limit, _ = self._page(limit, 0, DEFAULT_ACTIVE_USERS)
        return [
            ActiveUser(
                address=user.address,
                name=user.name,
                avatar=user.avatar,
                posts_count=user.posts_count,
                comments_count=user.comments_count,
                reputation=user.reputation,
            )
            for user in self.repository.active_users(limit)
        ]
