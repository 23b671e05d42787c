"""Application settings and configuration.

This module defines all configuration options for the Irys Forum backend.
Settings are loaded from environment variables with sensible defaults. Every
external integration is optional; leaving its variable unset selects the
corresponding fallback backend at startup.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Irys Forum", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration; unset selects the in-memory store
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    database_timeout_seconds: float = Field(default=5.0, alias="DATABASE_TIMEOUT_SECONDS")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for post and comment page caching
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    redis_timeout_seconds: float = Field(default=2.0, alias="REDIS_TIMEOUT_SECONDS")
    posts_cache_ttl_seconds: int = Field(default=300, alias="POSTS_CACHE_TTL_SECONDS")
    comments_cache_ttl_seconds: int = Field(default=180, alias="COMMENTS_CACHE_TTL_SECONDS")

    # Chain verification; both values are required for online verification
    chain_rpc_url: str | None = Field(default=None, alias="CHAIN_RPC_URL")
    contract_address: str | None = Field(default=None, alias="CONTRACT_ADDRESS")
    contract_username_selector: str | None = Field(
        default=None,
        alias="CONTRACT_USERNAME_SELECTOR",
    )
    chain_timeout_seconds: float = Field(default=10.0, alias="CHAIN_TIMEOUT_SECONDS")

    # Background task queue
    async_queue_enabled: bool = Field(default=True, alias="ASYNC_QUEUE_ENABLED")
    async_worker_count: int = Field(default=10, alias="ASYNC_WORKER_COUNT")
    task_retention_seconds: int = Field(default=3600, alias="TASK_RETENTION_SECONDS")

    # Content policy
    duplicate_window_seconds: int = Field(default=300, alias="DUPLICATE_WINDOW_SECONDS")
    max_page_size: int = Field(default=50, alias="MAX_PAGE_SIZE")
    default_posts_page_size: int = Field(default=15, alias="DEFAULT_POSTS_PAGE_SIZE")
    default_comments_page_size: int = Field(default=50, alias="DEFAULT_COMMENTS_PAGE_SIZE")
    max_tags: int = Field(default=10, alias="MAX_TAGS")
    recommendation_count: int = Field(default=10, alias="RECOMMENDATION_COUNT")
    recommendation_window_days: int = Field(default=7, alias="RECOMMENDATION_WINDOW_DAYS")

    # Avatar uploads
    avatar_dir: str = Field(default="./static/avatars", alias="AVATAR_DIR")
    avatar_max_bytes: int = Field(default=5 * 1024 * 1024, alias="AVATAR_MAX_BYTES")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str | None:
        """Return a sync-compatible database URL.

        Converts asyncpg URLs to psycopg because the storage layer runs
        synchronous SQLAlchemy sessions.

        Returns:
            Database URL compatible with synchronous drivers, or None when unset
        """
        url = self.database_url
        if url and url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url and url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+psycopg://", 1)
        if url and url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url


settings = Settings()
