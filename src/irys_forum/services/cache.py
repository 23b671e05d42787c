"""Read-through cache for base post and comment pages.

Only viewer-independent pages are cached; like status is overlaid by the
query service after retrieval. Redis failures are logged and treated as a
miss so the cache can never fail a request.
"""

from __future__ import annotations

import logging
from typing import Final

import redis
from pydantic import TypeAdapter, ValidationError

from irys_forum.schemas import CommentOut, PostOut

logger = logging.getLogger(__name__)

POSTS_KEY_PREFIX: Final[str] = "posts:"
COMMENTS_KEY_PREFIX: Final[str] = "comments:"
# Bumped on every invalidation; kept outside the page prefixes so pattern
# deletes leave them alone.
GENERATION_KEY_PREFIX: Final[str] = "generation:"

_POSTS_ADAPTER: Final = TypeAdapter(list[PostOut])
_COMMENTS_ADAPTER: Final = TypeAdapter(list[CommentOut])


def posts_key(limit: int, offset: int) -> str:
    return f"{POSTS_KEY_PREFIX}{limit}:{offset}"


def comments_key(post_id: str, limit: int, offset: int) -> str:
    return f"{COMMENTS_KEY_PREFIX}{post_id}:{limit}:{offset}"


def posts_generation_key() -> str:
    return f"{GENERATION_KEY_PREFIX}posts"


def comments_generation_key(post_id: str) -> str:
    return f"{GENERATION_KEY_PREFIX}comments:{post_id}"


class PostCache:
    """Cache interface; the base implementation stores nothing."""

    backend_name = "none"

    def get_posts(self, limit: int, offset: int) -> list[PostOut] | None:
        return None

    def posts_generation(self) -> str | None:
        """Return a token to pass to ``set_posts`` after reading the store."""
        return None

    def set_posts(
        self, limit: int, offset: int, posts: list[PostOut], *, generation: str | None = None
    ) -> None:
        return None

    def comments_generation(self, post_id: str) -> str | None:
        return None

    def get_comments(self, post_id: str, limit: int, offset: int) -> list[CommentOut] | None:
        return None

    def set_comments(
        self,
        post_id: str,
        limit: int,
        offset: int,
        comments: list[CommentOut],
        *,
        generation: str | None = None,
    ) -> None:
        return None

    def invalidate_posts(self) -> None:
        return None

    def invalidate_comments(self, post_id: str) -> None:
        return None

    def ping(self) -> bool:
        return False


class RedisPostCache(PostCache):
    """Redis-backed page cache with per-kind TTLs."""

    backend_name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        *,
        posts_ttl_seconds: int = 300,
        comments_ttl_seconds: int = 180,
    ) -> None:
        self._redis = client
        self.posts_ttl_seconds = posts_ttl_seconds
        self.comments_ttl_seconds = comments_ttl_seconds

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        timeout_seconds: float = 2.0,
        posts_ttl_seconds: int = 300,
        comments_ttl_seconds: int = 180,
    ) -> RedisPostCache:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(
            client,
            posts_ttl_seconds=posts_ttl_seconds,
            comments_ttl_seconds=comments_ttl_seconds,
        )

    def _get(self, key: str, adapter: TypeAdapter) -> list | None:
        try:
            raw = self._redis.get(key)
        except redis.RedisError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed cache entry %s", key)
            return None

    def _generation(self, generation_key: str) -> str | None:
        try:
            return self._redis.get(generation_key)
        except redis.RedisError as exc:
            logger.warning("Cache generation read failed for %s: %s", generation_key, exc)
            return None

    def _set(
        self,
        key: str,
        payload: bytes,
        ttl_seconds: int,
        generation_key: str,
        generation: str | None,
    ) -> None:
        """Store ``payload`` unless ``generation_key`` moved past ``generation``.

        The check and the write share one WATCH/MULTI transaction, so an
        invalidation landing after the store was read discards the fill.
        """
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(generation_key)
                if pipe.get(generation_key) != generation:
                    logger.debug("Skipping stale cache fill for %s", key)
                    return
                pipe.multi()
                pipe.set(key, payload, ex=ttl_seconds)
                pipe.execute()
        except redis.WatchError:
            logger.debug("Cache fill for %s lost to an invalidation", key)
        except redis.RedisError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    def _bump(self, generation_key: str) -> None:
        try:
            self._redis.incr(generation_key)
        except redis.RedisError as exc:
            logger.warning("Cache generation bump failed for %s: %s", generation_key, exc)

    def _delete_matching(self, pattern: str) -> None:
        try:
            keys = list(self._redis.scan_iter(match=pattern))
            if keys:
                self._redis.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("Cache invalidation failed for %s: %s", pattern, exc)

    def get_posts(self, limit: int, offset: int) -> list[PostOut] | None:
        return self._get(posts_key(limit, offset), _POSTS_ADAPTER)

    def posts_generation(self) -> str | None:
        return self._generation(posts_generation_key())

    def set_posts(
        self, limit: int, offset: int, posts: list[PostOut], *, generation: str | None = None
    ) -> None:
        self._set(
            posts_key(limit, offset),
            _POSTS_ADAPTER.dump_json(posts),
            self.posts_ttl_seconds,
            posts_generation_key(),
            generation,
        )

    def comments_generation(self, post_id: str) -> str | None:
        return self._generation(comments_generation_key(post_id))

    def get_comments(self, post_id: str, limit: int, offset: int) -> list[CommentOut] | None:
        return self._get(comments_key(post_id, limit, offset), _COMMENTS_ADAPTER)

    def set_comments(
        self,
        post_id: str,
        limit: int,
        offset: int,
        comments: list[CommentOut],
        *,
        generation: str | None = None,
    ) -> None:
        self._set(
            comments_key(post_id, limit, offset),
            _COMMENTS_ADAPTER.dump_json(comments),
            self.comments_ttl_seconds,
            comments_generation_key(post_id),
            generation,
        )

    def invalidate_posts(self) -> None:
        self._bump(posts_generation_key())
        self._delete_matching(f"{POSTS_KEY_PREFIX}*")

    def invalidate_comments(self, post_id: str) -> None:
        self._bump(comments_generation_key(post_id))
        self._delete_matching(f"{COMMENTS_KEY_PREFIX}{post_id}:*")

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False


class NullPostCache(PostCache):
    """Cache used when Redis is not configured."""


__all__ = [
    "NullPostCache",
    "PostCache",
    "RedisPostCache",
    "comments_generation_key",
    "comments_key",
    "posts_generation_key",
    "posts_key",
]
