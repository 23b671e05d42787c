# mypy: ignore-errors
"""Tests for the Redis page cache and its use by the query service."""

from datetime import UTC, datetime

import pytest
import redis

from irys_forum.schemas import PostCreate, PostOut
from irys_forum.services.cache import (
    PostCache,
    RedisPostCache,
    comments_generation_key,
    comments_key,
    posts_generation_key,
    posts_key,
)
from tests.factories import ALICE, BOB, post_payload

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


def _post(post_id: str = "p1") -> PostOut:
    return PostOut(
        id=post_id,
        title="Cached",
        content="Body",
        author_address=ALICE,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture()
def redis_client(mocker):
    return mocker.MagicMock(spec=redis.Redis)


@pytest.fixture()
def cache(redis_client) -> RedisPostCache:
    return RedisPostCache(redis_client, posts_ttl_seconds=300, comments_ttl_seconds=180)


@pytest.fixture()
def pipeline(redis_client):
    """The transaction pipeline the cache opens to fill a page."""
    return redis_client.pipeline.return_value.__enter__.return_value


def test_cache_keys() -> None:
    assert posts_key(15, 30) == "posts:15:30"
    assert comments_key("abc", 50, 0) == "comments:abc:50:0"
    assert posts_generation_key() == "generation:posts"
    assert comments_generation_key("abc") == "generation:comments:abc"


def test_posts_round_trip_through_redis(cache, redis_client, pipeline) -> None:
    pipeline.get.return_value = "3"
    cache.set_posts(15, 0, [_post()], generation="3")

    pipeline.watch.assert_called_once_with("generation:posts")
    key, payload = pipeline.set.call_args.args
    assert key == "posts:15:0"
    assert pipeline.set.call_args.kwargs == {"ex": 300}
    pipeline.execute.assert_called_once()

    redis_client.get.return_value = payload
    assert cache.get_posts(15, 0) == [_post()]


def test_comment_pages_use_their_own_ttl(cache, pipeline) -> None:
    pipeline.get.return_value = None
    cache.set_comments("p1", 50, 0, [])
    pipeline.watch.assert_called_once_with("generation:comments:p1")
    assert pipeline.set.call_args.kwargs == {"ex": 180}


def test_fill_is_dropped_after_an_invalidation(cache, pipeline) -> None:
    # The generation moved on while the page was being read from the store.
    pipeline.get.return_value = "4"

    cache.set_posts(15, 0, [_post()], generation="3")

    pipeline.multi.assert_not_called()
    pipeline.set.assert_not_called()


def test_fill_racing_an_invalidation_is_discarded(cache, pipeline) -> None:
    pipeline.get.return_value = "3"
    pipeline.execute.side_effect = redis.WatchError("generation:posts changed")

    cache.set_posts(15, 0, [_post()], generation="3")

    pipeline.set.assert_called_once()


def test_generation_reads_come_from_redis(cache, redis_client) -> None:
    redis_client.get.return_value = "7"
    assert cache.posts_generation() == "7"
    redis_client.get.assert_called_with("generation:posts")

    redis_client.get.side_effect = redis.ConnectionError("down")
    assert cache.comments_generation("p1") is None


def test_cache_miss_returns_none(cache, redis_client) -> None:
    redis_client.get.return_value = None
    assert cache.get_posts(15, 0) is None


def test_redis_errors_are_treated_as_misses(cache, redis_client, caplog) -> None:
    redis_client.get.side_effect = redis.ConnectionError("down")
    redis_client.pipeline.side_effect = redis.ConnectionError("down")

    assert cache.get_comments("p1", 50, 0) is None
    cache.set_posts(15, 0, [_post()])
    assert "Cache read failed" in caplog.text
    assert "Cache write failed" in caplog.text


def test_malformed_entries_are_discarded(cache, redis_client) -> None:
    redis_client.get.return_value = "not json"
    assert cache.get_posts(15, 0) is None


def test_invalidation_deletes_matching_keys(cache, redis_client) -> None:
    redis_client.scan_iter.return_value = iter(["posts:15:0", "posts:15:15"])
    cache.invalidate_posts()
    redis_client.incr.assert_called_with("generation:posts")
    redis_client.scan_iter.assert_called_with(match="posts:*")
    redis_client.delete.assert_called_once_with("posts:15:0", "posts:15:15")

    redis_client.scan_iter.return_value = iter([])
    cache.invalidate_comments("p1")
    redis_client.incr.assert_called_with("generation:comments:p1")
    redis_client.scan_iter.assert_called_with(match="comments:p1:*")
    redis_client.delete.assert_called_once()


def test_ping_failure_reports_unhealthy(cache, redis_client) -> None:
    redis_client.ping.side_effect = redis.TimeoutError("slow")
    assert cache.ping() is False


def test_list_posts_reads_through_cache(backends, mocker) -> None:
    cached = mocker.MagicMock(spec=PostCache)
    cached.get_posts.return_value = [_post("from-cache")]
    backends.queries.cache = cached
    list_posts = mocker.spy(backends.repository, "list_posts")

    posts = backends.queries.list_posts(limit=10)

    assert [post.id for post in posts] == ["from-cache"]
    cached.get_posts.assert_called_once_with(10, 0)
    list_posts.assert_not_called()


def test_list_posts_fills_cache_on_miss(backends, mocker) -> None:
    cached = mocker.MagicMock(spec=PostCache)
    cached.get_posts.return_value = None
    cached.posts_generation.return_value = "9"
    backends.queries.cache = cached

    backends.queries.list_posts()

    cached.set_posts.assert_called_once_with(15, 0, [], generation="9")


async def test_cached_pages_never_carry_viewer_likes(backends, alice, mocker) -> None:
    post = await backends.forum.create_post(PostCreate(**post_payload(ALICE)))
    backends.forum.toggle_post_like(post.id, BOB)
    cached = mocker.MagicMock(spec=PostCache)
    cached.get_posts.return_value = None
    backends.queries.cache = cached

    served = backends.queries.list_posts(viewer=BOB)

    assert served[0].is_liked_by_user is True
    stored_page = cached.set_posts.call_args.args[2]
    assert stored_page[0].is_liked_by_user is False


async def test_writes_invalidate_cached_pages(backends, alice, mocker) -> None:
    cached = mocker.MagicMock(spec=PostCache)
    backends.forum.cache = cached

    post = await backends.forum.create_post(PostCreate(**post_payload(ALICE)))
    backends.forum.toggle_post_like(post.id, BOB)

    assert cached.invalidate_posts.call_count == 2
