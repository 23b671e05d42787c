"""Comment endpoints that are not nested under a post."""

from fastapi import APIRouter, status

from irys_forum.schemas import CommentSubmit, LikeRequest, LikeResponse, TaskAccepted

from ..dependencies import ForumServiceDep, task_accepted

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/async", response_model=TaskAccepted, status_code=status.HTTP_202_ACCEPTED)
async def create_comment_async(payload: CommentSubmit, forum: ForumServiceDep) -> TaskAccepted:
    """Queue a comment creation and return the task to poll."""
    record = await forum.submit_create_comment(payload.post_id, payload)
    return task_accepted(record)


@router.post("/{comment_id}/like", response_model=LikeResponse)
def toggle_comment_like(
    comment_id: str, payload: LikeRequest, forum: ForumServiceDep
) -> LikeResponse:
    return forum.toggle_comment_like(comment_id, payload.user_address)
