# src/irys_forum/schemas/comment.py
"""Comment-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CommentCreate(BaseModel):
    """Schema for creating a comment on a post."""

    author_address: str = Field(..., description="0x-prefixed author address")
    content: str = Field(..., max_length=5000, description="Comment body")
    parent_id: str | None = Field(None, description="Parent comment for threaded replies")
    image: str | None = Field(None, description="Image URL or data URI")
    transaction_hash: str | None = Field(
        None,
        validation_alias=AliasChoices("transaction_hash", "tx_hash", "irys_transaction_id"),
        description="Chain transaction authorizing this comment",
    )


class CommentSubmit(CommentCreate):
    """Comment creation request that names its post in the body."""

    post_id: str = Field(..., description="Post being commented on")


class CommentOut(BaseModel):
    """Schema for comment information returned by the API."""

    id: str
    post_id: str
    parent_id: str | None = None
    content: str
    content_hash: str
    author_address: str
    author_name: str | None = None
    image: str | None = None
    likes: int = 0
    transaction_hash: str | None = None
    created_at: datetime
    updated_at: datetime
    is_liked_by_user: bool = False

    model_config = ConfigDict(from_attributes=True)


class CommentNode(CommentOut):
    """A comment with its replies resolved for tree rendering."""

    replies: list[CommentNode] = Field(default_factory=list)
