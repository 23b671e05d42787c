# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from irys_forum.api.v1.dependencies import get_backends
from irys_forum.core.settings import Settings
from irys_forum.db.session import build_engine, build_session_factory, create_tables, drop_tables
from irys_forum.main import app as fastapi_app
from irys_forum.repositories import ForumRepository, MemoryForumRepository, SqlForumRepository
from irys_forum.services.backends import Backends, build_backends
from irys_forum.services.cache import NullPostCache
from irys_forum.services.tasks import InlineTaskQueue
from tests.factories import ALICE, BOB, FakeClock

TEST_DB_URL = "sqlite://"


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = build_engine(TEST_DB_URL)
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    """Settings with every external integration switched off."""
    return Settings(
        DATABASE_URL=None,
        REDIS_URL=None,
        CHAIN_RPC_URL=None,
        CONTRACT_ADDRESS=None,
        ASYNC_QUEUE_ENABLED=False,
        AVATAR_DIR=str(tmp_path / "avatars"),
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["sql", "memory"])
def repository(request: pytest.FixtureRequest) -> Iterator[ForumRepository]:
    """Run the test once against each storage backend."""
    if request.param == "memory":
        yield MemoryForumRepository()
        return
    engine = request.getfixturevalue("engine")
    yield SqlForumRepository(build_session_factory(engine))


@pytest.fixture()
def sql_repository(engine: Engine) -> SqlForumRepository:
    return SqlForumRepository(build_session_factory(engine))


@pytest.fixture()
def backends(
    repository: ForumRepository, test_settings: Settings, clock: FakeClock
) -> Backends:
    return build_backends(
        test_settings,
        repository=repository,
        cache=NullPostCache(),
        tasks=InlineTaskQueue(),
        clock=clock,
    )


@pytest.fixture()
def app(backends: Backends) -> Iterator[FastAPI]:
    fastapi_app.dependency_overrides[get_backends] = lambda: backends
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(get_backends, None)


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    # No context manager: startup would build backends from the environment.
    return TestClient(app, base_url="http://test")


@pytest.fixture()
def alice(backends: Backends) -> str:
    """Address of a user who registered the username ``alice``."""
    backends.repository.register_username(ALICE, "alice")
    return ALICE


@pytest.fixture()
def bob(backends: Backends) -> str:
    """Address of a user who registered the username ``bob``."""
    backends.repository.register_username(BOB, "bob")
    return BOB

