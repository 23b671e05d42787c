"""Task polling endpoints."""

from fastapi import APIRouter

from irys_forum.schemas import TaskOut

from ..dependencies import ForumServiceDep, task_out

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, forum: ForumServiceDep) -> TaskOut:
    return task_out(forum.get_task(task_id))
