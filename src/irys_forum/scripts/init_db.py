"""Create (or reset) the forum tables in the configured database."""
from __future__ import annotations

import argparse
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql
from sqlalchemy.exc import SQLAlchemyError

from irys_forum.core.settings import settings
from irys_forum.db.session import build_engine, create_tables, drop_tables


def to_psycopg_url(url: str) -> str:
    """Return a Postgres URI suitable for psycopg.connect().

    SQLAlchemy driver suffixes (``postgresql+psycopg``) are stripped.
    """
    parts = urlsplit(url.strip().strip("'\""))
    scheme = parts.scheme.split("+", 1)[0]
    if scheme == "postgres":
        scheme = "postgresql"
    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))


def ensure_database_exists(url: str) -> None:
    """Create the target Postgres database if it is missing."""
    parts = urlsplit(to_psycopg_url(url))
    target_db = parts.path.lstrip("/") or "postgres"
    admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))

    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is None:
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
            print(f"[init_db] created database {target_db}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the forum tables")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every forum table before creating them again.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    url = args.url or settings.database_url_sync
    if not url:
        print("[init_db] ERROR: DATABASE_URL is not set", file=sys.stderr)
        sys.exit(1)

    try:
        if url.startswith("postgres"):
            ensure_database_exists(url)
        engine = build_engine(url)
        if args.drop_tables:
            drop_tables(engine)
            print("[init_db] dropped forum tables")
        create_tables(engine)
    except (SQLAlchemyError, psycopg.Error) as exc:
        print(f"[init_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    print("[init_db] database initialized")


if __name__ == "__main__":
    main()
