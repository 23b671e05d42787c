"""Post-related endpoints for the forum API."""

from fastapi import APIRouter, Query, status

from irys_forum.schemas import (
    CommentCreate,
    CommentNode,
    CommentOut,
    LikeRequest,
    LikeResponse,
    PostCreate,
    PostOut,
    TaskAccepted,
)

from ..dependencies import ForumServiceDep, QueryServiceDep, task_accepted

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", response_model=list[PostOut])
def list_posts(
    queries: QueryServiceDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    user_address: str | None = None,
) -> list[PostOut]:
    """List posts newest first.

    Args:
        limit: Page size, at most the configured maximum (larger values get a 400)
        offset: Number of posts to skip
        user_address: Viewer whose likes are reflected in ``is_liked_by_user``

    Returns:
        One page of posts; a page shorter than ``limit`` is the last one
    """
    return queries.list_posts(limit, offset, user_address)


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(payload: PostCreate, forum: ForumServiceDep) -> PostOut:
    """Create a post after the username gate, duplicate and transaction checks."""
    return await forum.create_post(payload)


@router.post("/async", response_model=TaskAccepted, status_code=status.HTTP_202_ACCEPTED)
async def create_post_async(payload: PostCreate, forum: ForumServiceDep) -> TaskAccepted:
    """Queue a post creation and return the task to poll."""
    record = await forum.submit_create_post(payload)
    return task_accepted(record)


@router.get("/{post_id}", response_model=PostOut)
def get_post(
    post_id: str, queries: QueryServiceDep, user_address: str | None = None
) -> PostOut:
    return queries.get_post(post_id, user_address)


@router.get("/{post_id}/comments", response_model=list[CommentOut])
def list_comments(
    post_id: str,
    queries: QueryServiceDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    user_address: str | None = None,
) -> list[CommentOut]:
    """List a post's comments oldest first."""
    return queries.list_comments(post_id, limit, offset, user_address)


@router.get("/{post_id}/comments/tree", response_model=list[CommentNode])
def comment_tree(
    post_id: str, queries: QueryServiceDep, user_address: str | None = None
) -> list[CommentNode]:
    """Return all comments of a post nested under their parents."""
    return queries.comment_tree(post_id, user_address)


@router.post(
    "/{post_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: str, payload: CommentCreate, forum: ForumServiceDep
) -> CommentOut:
    return await forum.create_comment(post_id, payload)


@router.post("/{post_id}/like", response_model=LikeResponse)
def toggle_post_like(
    post_id: str, payload: LikeRequest, forum: ForumServiceDep
) -> LikeResponse:
    """Like the post, or remove the like if the user already liked it."""
    return forum.toggle_post_like(post_id, payload.user_address)
