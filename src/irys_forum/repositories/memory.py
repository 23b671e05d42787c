"""In-process forum store used when no database is configured or reachable."""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from threading import RLock

from irys_forum.core.errors import Conflict, NotFound, ReplayDetected
from irys_forum.db.time import utcnow
from irys_forum.schemas import CommentOut, GlobalStats, PostOut, UserOut

from .base import (
    COMMENT_REPUTATION,
    POST_REPUTATION,
    FollowCounts,
    ForumRepository,
    NewComment,
    NewPost,
    RankedPost,
)

__all__ = ["MemoryForumRepository"]


@dataclass
class _UserRow:
    id: str
    address: str
    created_at: datetime
    username: str | None = None
    avatar: str | None = None
    bio: str | None = None
    posts_count: int = 0
    comments_count: int = 0
    reputation: int = 0


@dataclass
class _PostRow:
    seq: int
    data: NewPost
    likes: int = 0
    comments_count: int = 0
    views: int = 0


@dataclass
class _CommentRow:
    seq: int
    data: NewComment
    likes: int = 0


@dataclass
class _RecommendationSlot:
    post_id: str
    rank_position: int
    heat_score: float
    created_at: datetime


@dataclass
class _State:
    users: dict[str, _UserRow] = field(default_factory=dict)
    posts: dict[str, _PostRow] = field(default_factory=dict)
    comments: dict[str, _CommentRow] = field(default_factory=dict)
    post_likes: set[tuple[str, str]] = field(default_factory=set)
    comment_likes: set[tuple[str, str]] = field(default_factory=set)
    # follower -> following -> sequence number of the edge
    follows: dict[str, dict[str, int]] = field(default_factory=dict)
    used_transactions: dict[str, dict[str, object]] = field(default_factory=dict)
    recommendations: dict[date, list[_RecommendationSlot]] = field(default_factory=dict)


class MemoryForumRepository(ForumRepository):
    """Dictionary-backed store guarded by a single re-entrant lock.

    Every check-and-write runs under the lock, which gives the same uniqueness
    guarantees the SQL store gets from its constraints.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._state = _State()
        self._seq = itertools.count(1)

    # --- conversions ------------------------------------------------------------
    @staticmethod
    def _user_out(row: _UserRow) -> UserOut:
        return UserOut(
            id=row.id,
            address=row.address,
            name=row.username,
            avatar=row.avatar,
            bio=row.bio,
            has_username=row.username is not None,
            posts_count=row.posts_count,
            comments_count=row.comments_count,
            reputation=row.reputation,
            created_at=row.created_at,
        )

    def _post_out(self, row: _PostRow) -> PostOut:
        author = self._state.users.get(row.data.author_address)
        return PostOut(
            id=row.data.id,
            title=row.data.title,
            content=row.data.content,
            author_address=row.data.author_address,
            author_name=row.data.author_name,
            author_avatar=author.avatar if author else None,
            tags=list(row.data.tags),
            image=row.data.image,
            likes=row.likes,
            comments_count=row.comments_count,
            views=row.views,
            transaction_hash=row.data.tx_hash,
            chain_post_id=row.data.chain_post_id,
            created_at=row.data.created_at,
            updated_at=row.data.created_at,
        )

    @staticmethod
    def _comment_out(row: _CommentRow) -> CommentOut:
        return CommentOut(
            id=row.data.id,
            post_id=row.data.post_id,
            parent_id=row.data.parent_id,
            content=row.data.content,
            content_hash=row.data.content_hash,
            author_address=row.data.author_address,
            author_name=row.data.author_name,
            image=row.data.image,
            likes=row.likes,
            transaction_hash=row.data.tx_hash,
            created_at=row.data.created_at,
            updated_at=row.data.created_at,
        )

    def _ensure_user_row(self, address: str) -> _UserRow:
        row = self._state.users.get(address)
        if row is None:
            row = _UserRow(id=str(uuid.uuid4()), address=address, created_at=utcnow())
            self._state.users[address] = row
        return row

    def _posts_newest_first(self) -> list[_PostRow]:
        return sorted(
            self._state.posts.values(),
            key=lambda row: (row.data.created_at, row.seq),
            reverse=True,
        )

    # --- health -----------------------------------------------------------------
    def ping(self) -> bool:
        return True

    # --- users ------------------------------------------------------------------
    def get_user(self, address: str) -> UserOut | None:
        with self._lock:
            row = self._state.users.get(address)
            return self._user_out(row) if row else None

    def get_user_by_id(self, user_id: str) -> UserOut | None:
        with self._lock:
            for row in self._state.users.values():
                if row.id == user_id:
                    return self._user_out(row)
            return None

    def ensure_user(self, address: str) -> UserOut:
        with self._lock:
            return self._user_out(self._ensure_user_row(address))

    def username_taken(self, username: str) -> bool:
        with self._lock:
            return any(row.username == username for row in self._state.users.values())

    def register_username(self, address: str, username: str) -> UserOut:
        with self._lock:
            row = self._ensure_user_row(address)
            if row.username is not None:
                raise Conflict("Address already has a username")
            if self.username_taken(username):
                raise Conflict("Username is already taken")
            row.username = username
            return self._user_out(row)

    def update_bio(self, address: str, bio: str) -> UserOut:
        with self._lock:
            row = self._ensure_user_row(address)
            row.bio = bio
            return self._user_out(row)

    def update_avatar(self, address: str, avatar_url: str) -> UserOut:
        with self._lock:
            row = self._ensure_user_row(address)
            row.avatar = avatar_url
            return self._user_out(row)

    def active_users(self, limit: int) -> list[UserOut]:
        with self._lock:
            active = [
                row
                for row in self._state.users.values()
                if row.posts_count > 0 or row.comments_count > 0
            ]
            active.sort(
                key=lambda row: (-row.reputation, -row.posts_count, -row.comments_count, row.created_at)
            )
            return [self._user_out(row) for row in active[:limit]]

    def global_stats(self) -> GlobalStats:
        with self._lock:
            state = self._state
            return GlobalStats(
                total_users=sum(
                    1 for row in state.users.values() if row.posts_count or row.comments_count
                ),
                total_posts=len(state.posts),
                total_comments=len(state.comments),
                total_likes=sum(row.likes for row in state.posts.values())
                + sum(row.likes for row in state.comments.values()),
            )

    # --- posts ------------------------------------------------------------------
    def create_post(self, post: NewPost) -> PostOut:
        with self._lock:
            author = self._ensure_user_row(post.author_address)
            row = _PostRow(seq=next(self._seq), data=post)
            self._state.posts[post.id] = row
            author.posts_count += 1
            author.reputation += POST_REPUTATION
            return self._post_out(row)

    def get_post(self, post_id: str) -> PostOut | None:
        with self._lock:
            row = self._state.posts.get(post_id)
            return self._post_out(row) if row else None

    def record_view(self, post_id: str) -> None:
        with self._lock:
            row = self._state.posts.get(post_id)
            if row is not None:
                row.views += 1

    def list_posts(self, limit: int, offset: int) -> list[PostOut]:
        with self._lock:
            rows = self._posts_newest_first()[offset : offset + limit]
            return [self._post_out(row) for row in rows]

    def count_posts(self) -> int:
        with self._lock:
            return len(self._state.posts)

    def list_posts_by_author(self, address: str, limit: int, offset: int) -> list[PostOut]:
        with self._lock:
            rows = [
                row for row in self._posts_newest_first() if row.data.author_address == address
            ]
            return [self._post_out(row) for row in rows[offset : offset + limit]]

    def list_posts_since(self, since: datetime) -> list[PostOut]:
        with self._lock:
            return [
                self._post_out(row)
                for row in self._posts_newest_first()
                if row.data.created_at >= since
            ]

    def find_recent_post(self, author_address: str, content_hash: str, since: datetime) -> str | None:
        with self._lock:
            for row in self._state.posts.values():
                data = row.data
                if (
                    data.author_address == author_address
                    and data.content_hash == content_hash
                    and data.created_at > since
                ):
                    return data.id
            return None

    # --- comments ---------------------------------------------------------------
    def create_comment(self, comment: NewComment) -> CommentOut:
        with self._lock:
            post = self._state.posts.get(comment.post_id)
            if post is None:
                raise NotFound("Post not found")
            author = self._ensure_user_row(comment.author_address)
            row = _CommentRow(seq=next(self._seq), data=comment)
            self._state.comments[comment.id] = row
            post.comments_count += 1
            author.comments_count += 1
            author.reputation += COMMENT_REPUTATION
            return self._comment_out(row)

    def get_comment(self, comment_id: str) -> CommentOut | None:
        with self._lock:
            row = self._state.comments.get(comment_id)
            return self._comment_out(row) if row else None

    def list_comments(self, post_id: str, limit: int | None, offset: int) -> list[CommentOut]:
        with self._lock:
            rows = sorted(
                (row for row in self._state.comments.values() if row.data.post_id == post_id),
                key=lambda row: (row.data.created_at, row.seq),
            )
            end = None if limit is None else offset + limit
            return [self._comment_out(row) for row in rows[offset:end]]

    def find_recent_comment(
        self, author_address: str, post_id: str, content_hash: str, since: datetime
    ) -> str | None:
        with self._lock:
            for row in self._state.comments.values():
                data = row.data
                if (
                    data.author_address == author_address
                    and data.post_id == post_id
                    and data.content_hash == content_hash
                    and data.created_at > since
                ):
                    return data.id
            return None

    # --- likes ------------------------------------------------------------------
    def toggle_post_like(self, post_id: str, address: str) -> tuple[int, bool]:
        with self._lock:
            row = self._state.posts.get(post_id)
            if row is None:
                raise NotFound("Post not found")
            self._ensure_user_row(address)
            key = (post_id, address)
            if key in self._state.post_likes:
                self._state.post_likes.discard(key)
                row.likes = max(0, row.likes - 1)
                return row.likes, False
            self._state.post_likes.add(key)
            row.likes += 1
            return row.likes, True

    def toggle_comment_like(self, comment_id: str, address: str) -> tuple[int, bool]:
        with self._lock:
            row = self._state.comments.get(comment_id)
            if row is None:
                raise NotFound("Comment not found")
            self._ensure_user_row(address)
            key = (comment_id, address)
            if key in self._state.comment_likes:
                self._state.comment_likes.discard(key)
                row.likes = max(0, row.likes - 1)
                return row.likes, False
            self._state.comment_likes.add(key)
            row.likes += 1
            return row.likes, True

    def liked_post_ids(self, address: str, post_ids: list[str]) -> set[str]:
        with self._lock:
            return {post_id for post_id in post_ids if (post_id, address) in self._state.post_likes}

    def liked_comment_ids(self, address: str, comment_ids: list[str]) -> set[str]:
        with self._lock:
            return {
                comment_id
                for comment_id in comment_ids
                if (comment_id, address) in self._state.comment_likes
            }

    # --- follows ----------------------------------------------------------------
    def follow(self, follower: str, following: str) -> bool:
        with self._lock:
            self._ensure_user_row(follower)
            self._ensure_user_row(following)
            edges = self._state.follows.setdefault(follower, {})
            if following in edges:
                return False
            edges[following] = next(self._seq)
            return True

    def unfollow(self, follower: str, following: str) -> bool:
        with self._lock:
            edges = self._state.follows.get(follower, {})
            return edges.pop(following, None) is not None

    def is_following(self, follower: str, following: str) -> bool:
        with self._lock:
            return following in self._state.follows.get(follower, {})

    def _followers_of(self, address: str) -> dict[str, int]:
        return {
            follower: edges[address]
            for follower, edges in self._state.follows.items()
            if address in edges
        }

    def _mutual_of(self, address: str) -> dict[str, int]:
        return {
            target: seq
            for target, seq in self._state.follows.get(address, {}).items()
            if address in self._state.follows.get(target, {})
        }

    def follow_counts(self, address: str) -> FollowCounts:
        with self._lock:
            return FollowCounts(
                following=len(self._state.follows.get(address, {})),
                followers=len(self._followers_of(address)),
                mutual=len(self._mutual_of(address)),
            )

    def _page_users(self, edges: dict[str, int], limit: int, offset: int) -> list[UserOut]:
        ordered = sorted(edges.items(), key=lambda item: item[1], reverse=True)
        return [
            self._user_out(self._state.users[address])
            for address, _ in ordered[offset : offset + limit]
            if address in self._state.users
        ]

    def list_following(self, address: str, limit: int, offset: int) -> list[UserOut]:
        with self._lock:
            return self._page_users(self._state.follows.get(address, {}), limit, offset)

    def list_followers(self, address: str, limit: int, offset: int) -> list[UserOut]:
        with self._lock:
            return self._page_users(self._followers_of(address), limit, offset)

    def list_mutual(self, address: str, limit: int, offset: int) -> list[UserOut]:
        with self._lock:
            return self._page_users(self._mutual_of(address), limit, offset)

    # --- used transactions ------------------------------------------------------
    def is_transaction_used(self, tx_hash: str) -> bool:
        with self._lock:
            return tx_hash in self._state.used_transactions

    def claim_transaction(
        self,
        tx_hash: str,
        kind: str,
        user_address: str,
        content_id: str | None,
        block_number: int | None,
    ) -> None:
        with self._lock:
            if tx_hash in self._state.used_transactions:
                raise ReplayDetected("Transaction hash has already been used")
            self._state.used_transactions[tx_hash] = {
                "kind": kind,
                "user_address": user_address,
                "content_id": content_id,
                "block_number": block_number,
                "verified_at": utcnow(),
            }

    # --- recommendations --------------------------------------------------------
    def recommendations_for_day(self, day: date) -> list[RankedPost]:
        with self._lock:
            ranked = []
            for slot in self._state.recommendations.get(day, []):
                row = self._state.posts.get(slot.post_id)
                if row is None:
                    continue
                ranked.append(
                    RankedPost(
                        rank_position=slot.rank_position,
                        heat_score=slot.heat_score,
                        created_at=slot.created_at,
                        post=self._post_out(row),
                    )
                )
            return ranked

    def store_recommendations(
        self, day: date, entries: list[tuple[str, float]], created_at: datetime
    ) -> bool:
        with self._lock:
            if self._state.recommendations.get(day):
                return False
            self._state.recommendations[day] = [
                _RecommendationSlot(
                    post_id=post_id,
                    rank_position=rank,
                    heat_score=heat,
                    created_at=created_at,
                )
                for rank, (post_id, heat) in enumerate(entries, start=1)
            ]
            return True
