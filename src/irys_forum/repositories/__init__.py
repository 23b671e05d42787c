"""Forum storage backends."""

from .base import ForumRepository
from .memory import MemoryForumRepository
from .sql import SqlForumRepository

__all__ = ["ForumRepository", "MemoryForumRepository", "SqlForumRepository"]
