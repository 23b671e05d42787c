"""Storage contract shared by the SQL and in-memory forum stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Final

from irys_forum.schemas import CommentOut, GlobalStats, PostOut, UserOut

__all__ = [
    "COMMENT_REPUTATION",
    "FollowCounts",
    "ForumRepository",
    "NewComment",
    "NewPost",
    "POST_REPUTATION",
    "RankedPost",
]

POST_REPUTATION: Final[int] = 10
COMMENT_REPUTATION: Final[int] = 5


@dataclass(frozen=True)
class NewPost:
    """Validated post ready to be persisted."""

    id: str
    author_address: str
    author_name: str | None
    title: str
    content: str
    content_hash: str
    tags: list[str]
    image: str | None
    tx_hash: str | None
    chain_post_id: int | None
    created_at: datetime


@dataclass(frozen=True)
class NewComment:
    """Validated comment ready to be persisted."""

    id: str
    post_id: str
    parent_id: str | None
    author_address: str
    author_name: str | None
    content: str
    content_hash: str
    image: str | None
    tx_hash: str | None
    created_at: datetime


@dataclass(frozen=True)
class FollowCounts:
    """Follow-graph figures for one address."""

    following: int
    followers: int
    mutual: int


@dataclass(frozen=True)
class RankedPost:
    """A persisted recommendation slot joined with its post."""

    rank_position: int
    heat_score: float
    created_at: datetime
    post: PostOut


class ForumRepository(ABC):
    """Persistence operations used by the forum services.

    Every method is a single atomic unit: implementations must either apply
    all of its writes or none of them. Uniqueness of usernames, like records,
    follow pairs, used transaction hashes and recommendation slots is enforced
    here rather than by the callers.
    """

    backend_name: str = "abstract"

    # --- health -----------------------------------------------------------------
    @abstractmethod
    def ping(self) -> bool:
        """Return True when the backing store answers."""

    # --- users ------------------------------------------------------------------
    @abstractmethod
    def get_user(self, address: str) -> UserOut | None:
        """Return the user registered under ``address``."""

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> UserOut | None:
        """Return the user with the given identifier."""

    @abstractmethod
    def ensure_user(self, address: str) -> UserOut:
        """Return the user for ``address``, creating an empty record if needed."""

    @abstractmethod
    def username_taken(self, username: str) -> bool:
        """Return True if any address has claimed ``username``."""

    @abstractmethod
    def register_username(self, address: str, username: str) -> UserOut:
        """Bind ``username`` to ``address``.

        Raises:
            Conflict: If the username is taken or the address already has one.
        """

    @abstractmethod
    def update_bio(self, address: str, bio: str) -> UserOut:
        """Store a new bio for ``address``."""

    @abstractmethod
    def update_avatar(self, address: str, avatar_url: str) -> UserOut:
        """Store a new avatar URL for ``address``."""

    @abstractmethod
    def active_users(self, limit: int) -> list[UserOut]:
        """Return users with activity ranked by reputation, posts, then comments."""

    @abstractmethod
    def global_stats(self) -> GlobalStats:
        """Return forum-wide counters."""

    # --- posts ------------------------------------------------------------------
    @abstractmethod
    def create_post(self, post: NewPost) -> PostOut:
        """Persist a post and bump the author's counters in the same unit."""

    @abstractmethod
    def get_post(self, post_id: str) -> PostOut | None:
        """Return a post by identifier."""

    @abstractmethod
    def record_view(self, post_id: str) -> None:
        """Increment a post's view counter."""

    @abstractmethod
    def list_posts(self, limit: int, offset: int) -> list[PostOut]:
        """Return posts newest first."""

    @abstractmethod
    def count_posts(self) -> int:
        """Return the number of posts."""

    @abstractmethod
    def list_posts_by_author(self, address: str, limit: int, offset: int) -> list[PostOut]:
        """Return one author's posts newest first."""

    @abstractmethod
    def list_posts_since(self, since: datetime) -> list[PostOut]:
        """Return every post created at or after ``since``."""

    @abstractmethod
    def find_recent_post(self, author_address: str, content_hash: str, since: datetime) -> str | None:
        """Return the id of a post by ``author_address`` with the same body created after ``since``."""

    # --- comments ---------------------------------------------------------------
    @abstractmethod
    def create_comment(self, comment: NewComment) -> CommentOut:
        """Persist a comment and bump post and author counters in the same unit.

        Raises:
            NotFound: If the post no longer exists.
        """

    @abstractmethod
    def get_comment(self, comment_id: str) -> CommentOut | None:
        """Return a comment by identifier."""

    @abstractmethod
    def list_comments(self, post_id: str, limit: int | None, offset: int) -> list[CommentOut]:
        """Return a post's comments oldest first; ``limit=None`` returns all."""

    @abstractmethod
    def find_recent_comment(
        self, author_address: str, post_id: str, content_hash: str, since: datetime
    ) -> str | None:
        """Return the id of a matching comment on ``post_id`` created after ``since``."""

    # --- likes ------------------------------------------------------------------
    @abstractmethod
    def toggle_post_like(self, post_id: str, address: str) -> tuple[int, bool]:
        """Flip ``address``'s like on a post and return ``(likes, liked)``."""

    @abstractmethod
    def toggle_comment_like(self, comment_id: str, address: str) -> tuple[int, bool]:
        """Flip ``address``'s like on a comment and return ``(likes, liked)``."""

    @abstractmethod
    def liked_post_ids(self, address: str, post_ids: list[str]) -> set[str]:
        """Return the subset of ``post_ids`` that ``address`` has liked."""

    @abstractmethod
    def liked_comment_ids(self, address: str, comment_ids: list[str]) -> set[str]:
        """Return the subset of ``comment_ids`` that ``address`` has liked."""

    # --- follows ----------------------------------------------------------------
    @abstractmethod
    def follow(self, follower: str, following: str) -> bool:
        """Create a follow edge; return False if it already existed."""

    @abstractmethod
    def unfollow(self, follower: str, following: str) -> bool:
        """Remove a follow edge; return False if there was none."""

    @abstractmethod
    def is_following(self, follower: str, following: str) -> bool:
        """Return True when the edge ``follower -> following`` exists."""

    @abstractmethod
    def follow_counts(self, address: str) -> FollowCounts:
        """Return following, follower and mutual counts for ``address``."""

    @abstractmethod
    def list_following(self, address: str, limit: int, offset: int) -> list[UserOut]:
        """Return the users ``address`` follows, most recent first."""

    @abstractmethod
    def list_followers(self, address: str, limit: int, offset: int) -> list[UserOut]:
        """Return the users following ``address``, most recent first."""

    @abstractmethod
    def list_mutual(self, address: str, limit: int, offset: int) -> list[UserOut]:
        """Return the users who follow ``address`` and are followed back."""

    # --- used transactions ------------------------------------------------------
    @abstractmethod
    def is_transaction_used(self, tx_hash: str) -> bool:
        """Return True if ``tx_hash`` has already been claimed."""

    @abstractmethod
    def claim_transaction(
        self,
        tx_hash: str,
        kind: str,
        user_address: str,
        content_id: str | None,
        block_number: int | None,
    ) -> None:
        """Record ``tx_hash`` as used.

        Raises:
            ReplayDetected: If the hash was already claimed.
        """

    # --- recommendations --------------------------------------------------------
    @abstractmethod
    def recommendations_for_day(self, day: date) -> list[RankedPost]:
        """Return the stored ranking for ``day`` ordered by rank."""

    @abstractmethod
    def store_recommendations(
        self, day: date, entries: list[tuple[str, float]], created_at: datetime
    ) -> bool:
        """Persist ``(post_id, heat)`` pairs as ranks 1..n for ``day``.

        Returns False when another writer already stored the day's ranking.
        """
