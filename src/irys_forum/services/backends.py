"""Startup wiring of storage, cache, chain and task backends.

Each integration is chosen exactly once, here, from settings. A missing or
unreachable integration is replaced by its fallback and a warning is logged;
request handling never branches on backend availability.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from time import monotonic

import httpx
from sqlalchemy.exc import SQLAlchemyError

from irys_forum.core.settings import Settings
from irys_forum.db.session import build_engine, build_session_factory, create_tables
from irys_forum.db.time import utcnow
from irys_forum.repositories import ForumRepository, MemoryForumRepository, SqlForumRepository

from .cache import NullPostCache, PostCache, RedisPostCache
from .chain import ChainRpcClient, ChainVerifier, load_chain_config
from .forum import ForumService
from .query import QueryService
from .tasks import InlineTaskQueue, TaskQueue, WorkerPoolTaskQueue
from .users import UserService

logger = logging.getLogger(__name__)


@dataclass
class Backends:
    """Services and the backends they were built on."""

    settings: Settings
    repository: ForumRepository
    cache: PostCache
    chain_client: ChainRpcClient
    verifier: ChainVerifier
    tasks: TaskQueue
    users: UserService
    forum: ForumService
    queries: QueryService
    started_at: float = field(default_factory=monotonic)

    async def start(self) -> None:
        await self.tasks.start()

    async def stop(self) -> None:
        await self.tasks.stop()
        await self.chain_client.close()

    def status(self) -> dict[str, object]:
        """Report which backend is active for each integration and whether it answers."""
        return {
            "database": {
                "backend": self.repository.backend_name,
                "healthy": self.repository.ping(),
            },
            "cache": {
                "backend": self.cache.backend_name,
                "healthy": self.cache.ping(),
            },
            "chain": {
                "enabled": self.verifier.enabled,
                "username_lookup": bool(self.verifier.config.username_selector),
            },
            "task_queue": {
                "backend": self.tasks.backend_name,
                "workers": getattr(self.tasks, "worker_count", 0),
            },
            "uptime_seconds": round(monotonic() - self.started_at, 3),
        }


def build_repository(settings: Settings) -> ForumRepository:
    """Return the SQL store when the database answers, otherwise the memory store."""
    url = settings.database_url_sync
    if not url:
        logger.warning("DATABASE_URL not set; using the in-memory store")
        return MemoryForumRepository()
    try:
        engine = build_engine(
            url, echo=settings.sql_debug, timeout_seconds=settings.database_timeout_seconds
        )
        create_tables(engine)
    except SQLAlchemyError as exc:
        logger.warning("Database unreachable (%s); using the in-memory store", exc)
        return MemoryForumRepository()
    logger.info("Using SQL store (%s)", engine.url.render_as_string(hide_password=True))
    return SqlForumRepository(build_session_factory(engine))


def build_cache(settings: Settings) -> PostCache:
    """Return the Redis cache when it answers, otherwise the no-op cache."""
    if not settings.redis_url:
        logger.warning("REDIS_URL not set; page caching disabled")
        return NullPostCache()
    cache = RedisPostCache.from_url(
        settings.redis_url,
        timeout_seconds=settings.redis_timeout_seconds,
        posts_ttl_seconds=settings.posts_cache_ttl_seconds,
        comments_ttl_seconds=settings.comments_cache_ttl_seconds,
    )
    if not cache.ping():
        logger.warning("Redis unreachable; page caching disabled")
        return NullPostCache()
    return cache


def build_task_queue(settings: Settings) -> TaskQueue:
    if not settings.async_queue_enabled:
        logger.warning("Async task queue disabled; offloaded work runs inline")
        return InlineTaskQueue(retention_seconds=settings.task_retention_seconds)
    return WorkerPoolTaskQueue(
        settings.async_worker_count,
        retention_seconds=settings.task_retention_seconds,
    )


def build_backends(
    settings: Settings,
    *,
    repository: ForumRepository | None = None,
    cache: PostCache | None = None,
    tasks: TaskQueue | None = None,
    chain_transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Backends:
    """Assemble every service from settings, honouring explicit overrides."""
    repository = repository or build_repository(settings)
    cache = cache or build_cache(settings)
    tasks = tasks or build_task_queue(settings)

    chain_client = ChainRpcClient(load_chain_config(settings), transport=chain_transport)
    verifier = ChainVerifier(repository, chain_client)
    if not verifier.enabled:
        logger.warning(
            "CHAIN_RPC_URL or CONTRACT_ADDRESS not set; transactions are recorded unverified"
        )

    users = UserService(repository, cache, verifier, settings)
    forum = ForumService(repository, cache, verifier, tasks, users, settings, clock=clock)
    queries = QueryService(repository, cache, settings, clock=clock)
    return Backends(
        settings=settings,
        repository=repository,
        cache=cache,
        chain_client=chain_client,
        verifier=verifier,
        tasks=tasks,
        users=users,
        forum=forum,
        queries=queries,
    )
