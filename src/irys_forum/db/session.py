"""Database session configuration."""

from __future__ import annotations

import math

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import irys_forum.models  # noqa: E402,F401

_IN_MEMORY_SQLITE = {"sqlite://", "sqlite:///:memory:"}


def _serialize_sqlite_writers(engine: Engine) -> None:
    # Writers take the database lock at BEGIN and queue on the busy timeout.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):  # type: ignore[no-untyped-def]
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    url: str, *, echo: bool = False, timeout_seconds: float | None = None
) -> Engine:
    """Create an engine for ``url``.

    In-memory SQLite shares a single connection so every session sees the
    same database. ``timeout_seconds`` bounds connecting, waiting for a pooled
    connection and (on PostgreSQL) each statement; expiry surfaces as
    ``OperationalError``.
    """
    if url in _IN_MEMORY_SQLITE:
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    if url.startswith("sqlite"):
        connect_args: dict[str, object] = {"check_same_thread": False}
        if timeout_seconds is not None:
            connect_args["timeout"] = timeout_seconds
        engine = create_engine(url, connect_args=connect_args, echo=echo)
        _serialize_sqlite_writers(engine)
        return engine
    if timeout_seconds is None:
        return create_engine(url, pool_pre_ping=True, echo=echo)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        connect_args={
            # libpq takes whole seconds and treats 0 as "wait forever".
            "connect_timeout": max(1, math.ceil(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        },
        echo=echo,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory bound to ``engine``."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def create_tables(engine: Engine) -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
