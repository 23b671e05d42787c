# src/irys_forum/schemas/post.py
"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    author_address: str = Field(..., description="0x-prefixed author address")
    title: str = Field(..., max_length=200, description="Post title")
    content: str = Field(..., max_length=20000, description="Post body")
    tags: list[str] = Field(default_factory=list, description="Ordered tag list")
    image: str | None = Field(None, description="Image URL or data URI")
    transaction_hash: str | None = Field(
        None,
        validation_alias=AliasChoices("transaction_hash", "tx_hash", "irys_transaction_id"),
        description="Chain transaction authorizing this post",
    )
    chain_post_id: int | None = Field(
        None,
        validation_alias=AliasChoices("chain_post_id", "blockchain_post_id"),
        description="Post id assigned by the forum contract",
    )


class PostOut(BaseModel):
    """Schema for post information returned by the API."""

    id: str
    title: str
    content: str
    author_address: str
    author_name: str | None = None
    author_avatar: str | None = None
    tags: list[str] = Field(default_factory=list)
    image: str | None = None
    likes: int = 0
    comments_count: int = 0
    views: int = 0
    transaction_hash: str | None = None
    chain_post_id: int | None = None
    created_at: datetime
    updated_at: datetime
    is_liked_by_user: bool = False
    heat_score: float | None = None

    model_config = ConfigDict(from_attributes=True)
