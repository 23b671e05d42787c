"""Post and comment creation pipeline.

``ForumService`` composes the store, the page cache, the chain verifier and
the task queue. A create request runs, in order:

1. address format check
2. username gate (store first, then the contract)
3. non-empty title/body
4. duplicate-content window
5. optional transaction verification and claim
6. persistence with counter updates, then cache invalidation
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from irys_forum.core.errors import DuplicateSubmission, InvalidInput, NotFound, PermissionDenied
from irys_forum.core.settings import Settings
from irys_forum.core.validation import (
    content_hash,
    extract_hashtags,
    normalize_address,
    normalize_tags,
)
from irys_forum.db.time import utcnow
from irys_forum.repositories import ForumRepository
from irys_forum.repositories.base import NewComment, NewPost
from irys_forum.schemas import CommentCreate, CommentOut, LikeResponse, PostCreate, PostOut

from .cache import PostCache
from .chain import ChainVerifier
from .tasks import TaskQueue, TaskRecord
from .users import UserService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class ForumService:
    """Orchestrates writes to posts, comments and likes."""

    def __init__(
        self,
        repository: ForumRepository,
        cache: PostCache,
        verifier: ChainVerifier,
        tasks: TaskQueue,
        users: UserService,
        settings: Settings,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.verifier = verifier
        self.tasks = tasks
        self.users = users
        self.settings = settings
        self.clock = clock

    @property
    def duplicate_window(self) -> timedelta:
        return timedelta(seconds=self.settings.duplicate_window_seconds)

    async def _require_username(self, address: str) -> str:
        username = await self.users.username_for(address)
        if username is None:
            raise PermissionDenied("A registered username is required to post")
        return username

    @staticmethod
    def _require_text(value: str, field_name: str) -> str:
        text = value.strip()
        if not text:
            raise InvalidInput(f"{field_name} must not be empty")
        return text

    def _post_fields(self, payload: PostCreate) -> tuple[str, str, str, list[str]]:
        author = normalize_address(payload.author_address)
        title = self._require_text(payload.title, "Title")
        content = self._require_text(payload.content, "Content")
        tags = payload.tags or extract_hashtags(content)[: self.settings.max_tags]
        return author, title, content, normalize_tags(tags, max_tags=self.settings.max_tags)

    # Storage steps below are synchronous and run through ``asyncio.to_thread``.
    def _reject_duplicate_post(self, author: str, body_hash: str, now: datetime) -> None:
        if self.repository.find_recent_post(author, body_hash, now - self.duplicate_window):
            raise DuplicateSubmission("Identical post submitted recently")

    def _persist_post(self, post: NewPost) -> PostOut:
        created = self.repository.create_post(post)
        self.cache.invalidate_posts()
        return created

    def _check_comment_target(
        self, author: str, post_id: str, parent_id: str | None, body_hash: str, now: datetime
    ) -> None:
        if self.repository.get_post(post_id) is None:
            raise NotFound("Post not found")
        if parent_id:
            parent = self.repository.get_comment(parent_id)
            if parent is None or parent.post_id != post_id:
                raise InvalidInput("Parent comment does not belong to this post")
        if self.repository.find_recent_comment(
            author, post_id, body_hash, now - self.duplicate_window
        ):
            raise DuplicateSubmission("Identical comment submitted recently")

    def _persist_comment(self, comment: NewComment) -> CommentOut:
        created = self.repository.create_comment(comment)
        self.cache.invalidate_comments(comment.post_id)
        self.cache.invalidate_posts()
        return created

    # --- posts ------------------------------------------------------------------
    async def create_post(self, payload: PostCreate) -> PostOut:
        """Validate, authorize and persist a post.

        Raises:
            InvalidInput: Bad address, blank title/body, bad tags or hash format.
            PermissionDenied: The author has no registered username.
            DuplicateSubmission: Same body from the same author inside the window.
            ChainVerificationFailed: The chain rejected the transaction.
            ReplayDetected: The transaction hash was already used.
        """
        author = normalize_address(payload.author_address)
        author_name = await self._require_username(author)
        author, title, content, tags = self._post_fields(payload)

        now = self.clock()
        body_hash = content_hash(content)
        await asyncio.to_thread(self._reject_duplicate_post, author, body_hash, now)

        post_id = str(uuid.uuid4())
        chain_post_id = payload.chain_post_id
        if payload.transaction_hash:
            result = await self.verifier.authorize(payload.transaction_hash, "POST", author, post_id)
            if chain_post_id is None:
                chain_post_id = result.event_id

        post = await asyncio.to_thread(
            self._persist_post,
            NewPost(
                id=post_id,
                author_address=author,
                author_name=author_name,
                title=title,
                content=content,
                content_hash=body_hash,
                tags=tags,
                image=payload.image,
                tx_hash=payload.transaction_hash.strip().lower() if payload.transaction_hash else None,
                chain_post_id=chain_post_id,
                created_at=now,
            ),
        )
        logger.info("Created post %s by %s", post.id, author)
        return post

    async def submit_create_post(self, payload: PostCreate) -> TaskRecord:
        """Queue a post creation after the cheap local checks pass."""
        self._post_fields(payload)
        return await self.tasks.submit("create_post", lambda: self.create_post(payload))

    # --- comments ---------------------------------------------------------------
    def _comment_fields(self, post_id: str, payload: CommentCreate) -> tuple[str, str]:
        author = normalize_address(payload.author_address)
        content = self._require_text(payload.content, "Content")
        if not post_id:
            raise InvalidInput("Post id is required")
        return author, content

    async def create_comment(self, post_id: str, payload: CommentCreate) -> CommentOut:
        """Validate, authorize and persist a comment on ``post_id``.

        Raises:
            NotFound: The post does not exist.
            InvalidInput: Bad address, blank body, or a parent from another post.
            PermissionDenied: The author has no registered username.
            DuplicateSubmission: Same body on the same post inside the window.
            ChainVerificationFailed: The chain rejected the transaction.
            ReplayDetected: The transaction hash was already used.
        """
        author = normalize_address(payload.author_address)
        author_name = await self._require_username(author)
        author, content = self._comment_fields(post_id, payload)

        now = self.clock()
        body_hash = content_hash(content)
        await asyncio.to_thread(
            self._check_comment_target, author, post_id, payload.parent_id, body_hash, now
        )

        comment_id = str(uuid.uuid4())
        if payload.transaction_hash:
            await self.verifier.authorize(payload.transaction_hash, "COMMENT", author, comment_id)

        comment = await asyncio.to_thread(
            self._persist_comment,
            NewComment(
                id=comment_id,
                post_id=post_id,
                parent_id=payload.parent_id or None,
                author_address=author,
                author_name=author_name,
                content=content,
                content_hash=body_hash,
                image=payload.image,
                tx_hash=payload.transaction_hash.strip().lower() if payload.transaction_hash else None,
                created_at=now,
            ),
        )
        logger.info("Created comment %s on post %s by %s", comment.id, post_id, author)
        return comment

    async def submit_create_comment(self, post_id: str, payload: CommentCreate) -> TaskRecord:
        """Queue a comment creation after the cheap local checks pass."""
        self._comment_fields(post_id, payload)
        return await self.tasks.submit(
            "create_comment", lambda: self.create_comment(post_id, payload)
        )

    # --- likes ------------------------------------------------------------------
    def toggle_post_like(self, post_id: str, user_address: str) -> LikeResponse:
        """Like or unlike a post; liking one's own post is allowed."""
        address = normalize_address(user_address)
        likes, liked = self.repository.toggle_post_like(post_id, address)
        self.cache.invalidate_posts()
        return LikeResponse(likes=likes, is_liked=liked)

    def toggle_comment_like(self, comment_id: str, user_address: str) -> LikeResponse:
        """Like or unlike a comment; liking one's own comment is allowed."""
        address = normalize_address(user_address)
        comment = self.repository.get_comment(comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        likes, liked = self.repository.toggle_comment_like(comment_id, address)
        self.cache.invalidate_comments(comment.post_id)
        return LikeResponse(likes=likes, is_liked=liked)

    # --- tasks ------------------------------------------------------------------
    def get_task(self, task_id: str) -> TaskRecord:
        record = self.tasks.get(task_id)
        if record is None:
            raise NotFound("Task not found")
        return record
