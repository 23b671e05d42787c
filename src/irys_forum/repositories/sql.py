"""SQLAlchemy-backed forum store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import TypeVar

from sqlalchemy import and_, delete, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, aliased, sessionmaker

from irys_forum.core.errors import BackendUnavailable, Conflict, NotFound, ReplayDetected
from irys_forum.db.time import as_utc
from irys_forum.models import (
    Comment,
    CommentLike,
    DailyRecommendation,
    Follow,
    Post,
    PostLike,
    UsedTransaction,
    User,
)
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

__all__ = ["SqlForumRepository"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        address=user.address,
        name=user.username if user.has_username else None,
        avatar=user.avatar,
        bio=user.bio,
        has_username=user.has_username,
        posts_count=user.posts_count,
        comments_count=user.comments_count,
        reputation=user.reputation,
        created_at=as_utc(user.created_at),
    )


def _post_out(post: Post, avatar: str | None = None) -> PostOut:
    return PostOut(
        id=post.id,
        title=post.title,
        content=post.content,
        author_address=post.author_address,
        author_name=post.author_name,
        author_avatar=avatar,
        tags=list(post.tags or []),
        image=post.image,
        likes=post.likes,
        comments_count=post.comments_count,
        views=post.views,
        transaction_hash=post.chain_tx_hash,
        chain_post_id=post.chain_post_id,
        created_at=as_utc(post.created_at),
        updated_at=as_utc(post.updated_at),
    )


def _comment_out(comment: Comment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        post_id=comment.post_id,
        parent_id=comment.parent_id,
        content=comment.content,
        content_hash=comment.content_hash,
        author_address=comment.author_address,
        author_name=comment.author_name,
        image=comment.image,
        likes=comment.likes,
        transaction_hash=comment.chain_tx_hash,
        created_at=as_utc(comment.created_at),
        updated_at=as_utc(comment.updated_at),
    )


class SqlForumRepository(ForumRepository):
    """Forum store running one transaction per operation.

    Reads are retried once on transient connection errors. Writes are never
    retried; a transient failure surfaces as ``BackendUnavailable``.
    """

    backend_name = "sql"

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # --- plumbing ---------------------------------------------------------------
    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _read(self, operation: Callable[[Session], T]) -> T:
        try:
            with self._transaction() as session:
                return operation(session)
        except _TRANSIENT_ERRORS as exc:
            logger.warning("Transient database error on read, retrying once: %s", exc)
        try:
            with self._transaction() as session:
                return operation(session)
        except _TRANSIENT_ERRORS as exc:
            raise BackendUnavailable("Database is unavailable") from exc

    def _write(self, operation: Callable[[Session], T]) -> T:
        try:
            with self._transaction() as session:
                return operation(session)
        except _TRANSIENT_ERRORS as exc:
            logger.error("Database write failed: %s", exc)
            raise BackendUnavailable("Database is unavailable") from exc

    @staticmethod
    def _user_row(session: Session, address: str) -> User | None:
        return session.scalar(select(User).where(User.address == address))

    def _ensure_user_row(self, session: Session, address: str) -> User:
        user = self._user_row(session, address)
        if user is None:
            user = User(address=address)
            session.add(user)
            session.flush()
        return user

    @staticmethod
    def _avatars(session: Session, addresses: set[str]) -> dict[str, str | None]:
        if not addresses:
            return {}
        rows = session.execute(
            select(User.address, User.avatar).where(User.address.in_(addresses))
        )
        return {address: avatar for address, avatar in rows}

    def _posts_out(self, session: Session, posts: list[Post]) -> list[PostOut]:
        avatars = self._avatars(session, {post.author_address for post in posts})
        return [_post_out(post, avatars.get(post.author_address)) for post in posts]

    # --- health -----------------------------------------------------------------
    def ping(self) -> bool:
        try:
            with self._transaction() as session:
                session.execute(text("SELECT 1"))
        except _TRANSIENT_ERRORS as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    # --- users ------------------------------------------------------------------
    def get_user(self, address: str) -> UserOut | None:
        def operation(session: Session) -> UserOut | None:
            user = self._user_row(session, address)
            return _user_out(user) if user else None

        return self._read(operation)

    def get_user_by_id(self, user_id: str) -> UserOut | None:
        def operation(session: Session) -> UserOut | None:
            user = session.get(User, user_id)
            return _user_out(user) if user else None

        return self._read(operation)

    def ensure_user(self, address: str) -> UserOut:
        def operation(session: Session) -> UserOut:
            return _user_out(self._ensure_user_row(session, address))

        try:
            return self._write(operation)
        except IntegrityError:
            # Lost a creation race; the row exists now.
            user = self.get_user(address)
            if user is None:
                raise
            return user

    def username_taken(self, username: str) -> bool:
        return self._read(
            lambda session: session.scalar(
                select(func.count()).select_from(User).where(User.username == username)
            )
            > 0
        )

    def register_username(self, address: str, username: str) -> UserOut:
        def operation(session: Session) -> UserOut:
            user = self._ensure_user_row(session, address)
            if user.has_username:
                raise Conflict("Address already has a username")
            if session.scalar(select(User.id).where(User.username == username)):
                raise Conflict("Username is already taken")
            claimed = session.execute(
                update(User)
                .where(User.address == address, User.has_username.is_(False))
                .values(username=username, has_username=True)
            ).rowcount
            if not claimed:
                raise Conflict("Address already has a username")
            session.refresh(user)
            return _user_out(user)

        try:
            return self._write(operation)
        except IntegrityError as exc:
            raise Conflict("Username is already taken") from exc

    def update_bio(self, address: str, bio: str) -> UserOut:
        def operation(session: Session) -> UserOut:
            user = self._ensure_user_row(session, address)
            user.bio = bio
            session.flush()
            return _user_out(user)

        return self._write(operation)

    def update_avatar(self, address: str, avatar_url: str) -> UserOut:
        def operation(session: Session) -> UserOut:
            user = self._ensure_user_row(session, address)
            user.avatar = avatar_url
            session.flush()
            return _user_out(user)

        return self._write(operation)

    def active_users(self, limit: int) -> list[UserOut]:
        def operation(session: Session) -> list[UserOut]:
            users = session.scalars(
                select(User)
                .where(or_(User.posts_count > 0, User.comments_count > 0))
                .order_by(
                    User.reputation.desc(),
                    User.posts_count.desc(),
                    User.comments_count.desc(),
                    User.created_at.asc(),
                )
                .limit(limit)
            )
            return [_user_out(user) for user in users]

        return self._read(operation)

    def global_stats(self) -> GlobalStats:
        def operation(session: Session) -> GlobalStats:
            total_users = session.scalar(
                select(func.count())
                .select_from(User)
                .where(or_(User.posts_count > 0, User.comments_count > 0))
            )
            total_posts = session.scalar(select(func.count()).select_from(Post))
            total_comments = session.scalar(select(func.count()).select_from(Comment))
            post_likes = session.scalar(select(func.coalesce(func.sum(Post.likes), 0)))
            comment_likes = session.scalar(select(func.coalesce(func.sum(Comment.likes), 0)))
            return GlobalStats(
                total_users=total_users or 0,
                total_posts=total_posts or 0,
                total_comments=total_comments or 0,
                total_likes=int(post_likes or 0) + int(comment_likes or 0),
            )

        return self._read(operation)

    # --- posts ------------------------------------------------------------------
    def create_post(self, post: NewPost) -> PostOut:
        def operation(session: Session) -> PostOut:
            author = self._ensure_user_row(session, post.author_address)
            row = Post(
                id=post.id,
                author_address=post.author_address,
                author_name=post.author_name,
                title=post.title,
                content=post.content,
                content_hash=post.content_hash,
                tags=list(post.tags),
                image=post.image,
                chain_tx_hash=post.tx_hash,
                chain_post_id=post.chain_post_id,
                created_at=post.created_at,
                updated_at=post.created_at,
            )
            session.add(row)
            session.execute(
                update(User)
                .where(User.address == post.author_address)
                .values(
                    posts_count=User.posts_count + 1,
                    reputation=User.reputation + POST_REPUTATION,
                )
            )
            session.flush()
            return _post_out(row, author.avatar)

        return self._write(operation)

    def get_post(self, post_id: str) -> PostOut | None:
        def operation(session: Session) -> PostOut | None:
            post = session.get(Post, post_id)
            if post is None:
                return None
            return self._posts_out(session, [post])[0]

        return self._read(operation)

    def record_view(self, post_id: str) -> None:
        self._write(
            lambda session: session.execute(
                update(Post).where(Post.id == post_id).values(views=Post.views + 1)
            )
        )

    def list_posts(self, limit: int, offset: int) -> list[PostOut]:
        def operation(session: Session) -> list[PostOut]:
            posts = session.scalars(
                select(Post)
                .order_by(Post.created_at.desc(), Post.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._posts_out(session, list(posts))

        return self._read(operation)

    def count_posts(self) -> int:
        return self._read(
            lambda session: session.scalar(select(func.count()).select_from(Post)) or 0
        )

    def list_posts_by_author(self, address: str, limit: int, offset: int) -> list[PostOut]:
        def operation(session: Session) -> list[PostOut]:
            posts = session.scalars(
                select(Post)
                .where(Post.author_address == address)
                .order_by(Post.created_at.desc(), Post.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._posts_out(session, list(posts))

        return self._read(operation)

    def list_posts_since(self, since: datetime) -> list[PostOut]:
        def operation(session: Session) -> list[PostOut]:
            posts = session.scalars(
                select(Post).where(Post.created_at >= since).order_by(Post.created_at.desc())
            )
            return self._posts_out(session, list(posts))

        return self._read(operation)

    def find_recent_post(self, author_address: str, content_hash: str, since: datetime) -> str | None:
        return self._read(
            lambda session: session.scalar(
                select(Post.id)
                .where(
                    Post.author_address == author_address,
                    Post.content_hash == content_hash,
                    Post.created_at > since,
                )
                .limit(1)
            )
        )

    # --- comments ---------------------------------------------------------------
    def create_comment(self, comment: NewComment) -> CommentOut:
        def operation(session: Session) -> CommentOut:
            if session.get(Post, comment.post_id) is None:
                raise NotFound("Post not found")
            self._ensure_user_row(session, comment.author_address)
            row = Comment(
                id=comment.id,
                post_id=comment.post_id,
                parent_id=comment.parent_id,
                author_address=comment.author_address,
                author_name=comment.author_name,
                content=comment.content,
                content_hash=comment.content_hash,
                image=comment.image,
                chain_tx_hash=comment.tx_hash,
                created_at=comment.created_at,
                updated_at=comment.created_at,
            )
            session.add(row)
            session.execute(
                update(Post)
                .where(Post.id == comment.post_id)
                .values(comments_count=Post.comments_count + 1)
            )
            session.execute(
                update(User)
                .where(User.address == comment.author_address)
                .values(
                    comments_count=User.comments_count + 1,
                    reputation=User.reputation + COMMENT_REPUTATION,
                )
            )
            session.flush()
            return _comment_out(row)

        return self._write(operation)

    def get_comment(self, comment_id: str) -> CommentOut | None:
        def operation(session: Session) -> CommentOut | None:
            comment = session.get(Comment, comment_id)
            return _comment_out(comment) if comment else None

        return self._read(operation)

    def list_comments(self, post_id: str, limit: int | None, offset: int) -> list[CommentOut]:
        def operation(session: Session) -> list[CommentOut]:
            stmt = (
                select(Comment)
                .where(Comment.post_id == post_id)
                .order_by(Comment.created_at.asc(), Comment.id.asc())
                .offset(offset)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [_comment_out(comment) for comment in session.scalars(stmt)]

        return self._read(operation)

    def find_recent_comment(
        self, author_address: str, post_id: str, content_hash: str, since: datetime
    ) -> str | None:
        return self._read(
            lambda session: session.scalar(
                select(Comment.id)
                .where(
                    Comment.author_address == author_address,
                    Comment.post_id == post_id,
                    Comment.content_hash == content_hash,
                    Comment.created_at > since,
                )
                .limit(1)
            )
        )

    # --- likes ------------------------------------------------------------------
    def toggle_post_like(self, post_id: str, address: str) -> tuple[int, bool]:
        def operation(session: Session) -> tuple[int, bool]:
            if session.get(Post, post_id) is None:
                raise NotFound("Post not found")
            self._ensure_user_row(session, address)
            removed = session.execute(
                delete(PostLike).where(
                    PostLike.post_id == post_id, PostLike.user_address == address
                )
            ).rowcount
            if removed:
                session.execute(
                    update(Post)
                    .where(Post.id == post_id, Post.likes > 0)
                    .values(likes=Post.likes - 1)
                )
            else:
                session.add(PostLike(post_id=post_id, user_address=address))
                session.flush()
                session.execute(
                    update(Post).where(Post.id == post_id).values(likes=Post.likes + 1)
                )
            likes = session.scalar(select(Post.likes).where(Post.id == post_id))
            return int(likes or 0), not removed

        try:
            return self._write(operation)
        except IntegrityError:
            # A concurrent toggle inserted the same like first.
            logger.info("Concurrent like on post %s by %s", post_id, address)
            post = self.get_post(post_id)
            return (post.likes if post else 0), True

    def toggle_comment_like(self, comment_id: str, address: str) -> tuple[int, bool]:
        def operation(session: Session) -> tuple[int, bool]:
            if session.get(Comment, comment_id) is None:
                raise NotFound("Comment not found")
            self._ensure_user_row(session, address)
            removed = session.execute(
                delete(CommentLike).where(
                    CommentLike.comment_id == comment_id, CommentLike.user_address == address
                )
            ).rowcount
            if removed:
                session.execute(
                    update(Comment)
                    .where(Comment.id == comment_id, Comment.likes > 0)
                    .values(likes=Comment.likes - 1)
                )
            else:
                session.add(CommentLike(comment_id=comment_id, user_address=address))
                session.flush()
                session.execute(
                    update(Comment).where(Comment.id == comment_id).values(likes=Comment.likes + 1)
                )
            likes = session.scalar(select(Comment.likes).where(Comment.id == comment_id))
            return int(likes or 0), not removed

        try:
            return self._write(operation)
        except IntegrityError:
            logger.info("Concurrent like on comment %s by %s", comment_id, address)
            comment = self.get_comment(comment_id)
            return (comment.likes if comment else 0), True

    def liked_post_ids(self, address: str, post_ids: list[str]) -> set[str]:
        if not post_ids:
            return set()
        return self._read(
            lambda session: set(
                session.scalars(
                    select(PostLike.post_id).where(
                        PostLike.user_address == address, PostLike.post_id.in_(post_ids)
                    )
                )
            )
        )

    def liked_comment_ids(self, address: str, comment_ids: list[str]) -> set[str]:
        if not comment_ids:
            return set()
        return self._read(
            lambda session: set(
                session.scalars(
                    select(CommentLike.comment_id).where(
                        CommentLike.user_address == address,
                        CommentLike.comment_id.in_(comment_ids),
                    )
                )
            )
        )

    # --- follows ----------------------------------------------------------------
    def follow(self, follower: str, following: str) -> bool:
        def operation(session: Session) -> bool:
            self._ensure_user_row(session, follower)
            self._ensure_user_row(session, following)
            existing = session.scalar(
                select(Follow.id).where(
                    Follow.follower_address == follower, Follow.following_address == following
                )
            )
            if existing is not None:
                return False
            session.add(Follow(follower_address=follower, following_address=following))
            session.flush()
            return True

        try:
            return self._write(operation)
        except IntegrityError:
            return False

    def unfollow(self, follower: str, following: str) -> bool:
        return self._write(
            lambda session: bool(
                session.execute(
                    delete(Follow).where(
                        Follow.follower_address == follower,
                        Follow.following_address == following,
                    )
                ).rowcount
            )
        )

    def is_following(self, follower: str, following: str) -> bool:
        return self._read(
            lambda session: session.scalar(
                select(Follow.id).where(
                    Follow.follower_address == follower, Follow.following_address == following
                )
            )
            is not None
        )

    @staticmethod
    def _mutual_query(address: str):
        back = aliased(Follow)
        return (
            select(Follow)
            .join(
                back,
                and_(
                    back.follower_address == Follow.following_address,
                    back.following_address == Follow.follower_address,
                ),
            )
            .where(Follow.follower_address == address)
        )

    def follow_counts(self, address: str) -> FollowCounts:
        def operation(session: Session) -> FollowCounts:
            following = session.scalar(
                select(func.count()).select_from(Follow).where(Follow.follower_address == address)
            )
            followers = session.scalar(
                select(func.count()).select_from(Follow).where(Follow.following_address == address)
            )
            mutual = session.scalar(
                select(func.count()).select_from(self._mutual_query(address).subquery())
            )
            return FollowCounts(following or 0, followers or 0, mutual or 0)

        return self._read(operation)

    def _users_for(self, session: Session, addresses: list[str]) -> list[UserOut]:
        if not addresses:
            return []
        users = {
            user.address: user
            for user in session.scalars(select(User).where(User.address.in_(addresses)))
        }
        return [_user_out(users[address]) for address in addresses if address in users]

    def list_following(self, address: str, limit: int, offset: int) -> list[UserOut]:
        def operation(session: Session) -> list[UserOut]:
            addresses = session.scalars(
                select(Follow.following_address)
                .where(Follow.follower_address == address)
                .order_by(Follow.created_at.desc(), Follow.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._users_for(session, list(addresses))

        return self._read(operation)

    def list_followers(self, address: str, limit: int, offset: int) -> list[UserOut]:
        def operation(session: Session) -> list[UserOut]:
            addresses = session.scalars(
                select(Follow.follower_address)
                .where(Follow.following_address == address)
                .order_by(Follow.created_at.desc(), Follow.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._users_for(session, list(addresses))

        return self._read(operation)

    def list_mutual(self, address: str, limit: int, offset: int) -> list[UserOut]:
        def operation(session: Session) -> list[UserOut]:
            edges = session.scalars(
                self._mutual_query(address)
                .order_by(Follow.created_at.desc(), Follow.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._users_for(session, [edge.following_address for edge in edges])

        return self._read(operation)

    # --- used transactions ------------------------------------------------------
    def is_transaction_used(self, tx_hash: str) -> bool:
        return self._read(lambda session: session.get(UsedTransaction, tx_hash) is not None)

    def claim_transaction(
        self,
        tx_hash: str,
        kind: str,
        user_address: str,
        content_id: str | None,
        block_number: int | None,
    ) -> None:
        def operation(session: Session) -> None:
            session.add(
                UsedTransaction(
                    tx_hash=tx_hash,
                    kind=kind,
                    user_address=user_address,
                    content_id=content_id,
                    block_number=block_number,
                )
            )
            session.flush()

        try:
            self._write(operation)
        except IntegrityError as exc:
            raise ReplayDetected("Transaction hash has already been used") from exc

    # --- recommendations --------------------------------------------------------
    def recommendations_for_day(self, day: date) -> list[RankedPost]:
        def operation(session: Session) -> list[RankedPost]:
            rows = session.execute(
                select(DailyRecommendation, Post)
                .join(Post, Post.id == DailyRecommendation.post_id)
                .where(DailyRecommendation.day == day)
                .order_by(DailyRecommendation.rank_position.asc())
            ).all()
            posts = self._posts_out(session, [post for _, post in rows])
            return [
                RankedPost(
                    rank_position=slot.rank_position,
                    heat_score=slot.heat_score,
                    created_at=as_utc(slot.created_at),
                    post=post,
                )
                for (slot, _), post in zip(rows, posts, strict=True)
            ]

        return self._read(operation)

    def store_recommendations(
        self, day: date, entries: list[tuple[str, float]], created_at: datetime
    ) -> bool:
        def operation(session: Session) -> bool:
            for rank, (post_id, heat) in enumerate(entries, start=1):
                session.add(
                    DailyRecommendation(
                        post_id=post_id,
                        rank_position=rank,
                        day=day,
                        heat_score=heat,
                        created_at=created_at,
                    )
                )
            session.flush()
            return True

        try:
            return self._write(operation)
        except IntegrityError:
            logger.info("Recommendations for %s were stored concurrently", day)
            return False
