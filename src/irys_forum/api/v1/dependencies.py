"""Shared API dependencies resolving the services built at startup."""

from typing import Annotated

from fastapi import Depends, Request

from irys_forum.schemas import TaskAccepted, TaskOut
from irys_forum.services.backends import Backends
from irys_forum.services.forum import ForumService
from irys_forum.services.query import QueryService
from irys_forum.services.tasks import TaskRecord
from irys_forum.services.users import UserService


def get_backends(request: Request) -> Backends:
    """Return the backend bundle attached to the application at startup."""
    return request.app.state.backends


BackendsDep = Annotated[Backends, Depends(get_backends)]


def get_forum_service(backends: BackendsDep) -> ForumService:
    return backends.forum


def get_user_service(backends: BackendsDep) -> UserService:
    return backends.users


def get_query_service(backends: BackendsDep) -> QueryService:
    return backends.queries


ForumServiceDep = Annotated[ForumService, Depends(get_forum_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
QueryServiceDep = Annotated[QueryService, Depends(get_query_service)]


def task_out(record: TaskRecord) -> TaskOut:
    """Render a task record for polling clients."""
    return TaskOut(
        task_id=record.task_id,
        kind=record.kind,
        status=record.status.value,
        result=record.result,
        error=record.error,
        error_kind=record.error_kind,
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


def task_accepted(record: TaskRecord) -> TaskAccepted:
    return TaskAccepted(
        task_id=record.task_id,
        status=record.status.value,
        status_url=f"/api/tasks/{record.task_id}",
    )
