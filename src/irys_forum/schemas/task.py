# src/irys_forum/schemas/task.py
"""Background task schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class TaskOut(BaseModel):
    """Pollable state of an offloaded operation."""

    task_id: str
    kind: str
    status: str
    result: Any | None = None
    error: str | None = None
    error_kind: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class TaskAccepted(BaseModel):
    """Response returned when work is queued."""

    task_id: str
    status: str
    status_url: str
