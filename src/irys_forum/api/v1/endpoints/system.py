"""Operational endpoints describing the running backends."""

from __future__ import annotations

from fastapi import APIRouter

from ..dependencies import BackendsDep

router = APIRouter(tags=["system"])


@router.get("/performance")
def performance(backends: BackendsDep) -> dict[str, object]:
    """Return which backend serves each integration and whether it answers.

    Connection strings and other secrets are never included.
    """
    return {
        "app": {
            "name": backends.settings.app_name,
            "version": backends.settings.app_version,
        },
        "backends": backends.status(),
        "limits": {
            "max_page_size": backends.settings.max_page_size,
            "duplicate_window_seconds": backends.settings.duplicate_window_seconds,
            "async_queue_enabled": backends.settings.async_queue_enabled,
        },
    }
