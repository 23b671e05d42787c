"""Typed failures raised by the forum services.

Every exception carries a machine-readable ``kind`` and the HTTP status the
API layer renders it with, so services never import FastAPI.
"""

from __future__ import annotations

from fastapi import status


class ForumError(RuntimeError):
    """Base exception for all forum failures."""

    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Return the JSON body rendered for this error."""
        return {"detail": self.message, "error": self.kind}


class InvalidInput(ForumError):
    """Raised for malformed fields such as bad addresses or empty bodies."""

    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDenied(ForumError):
    """Raised when the caller lacks a registered username."""

    kind = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ForumError):
    """Raised when a post, comment or user does not exist."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateSubmission(ForumError):
    """Raised when identical content is resubmitted inside the duplicate window."""

    kind = "duplicate_submission"
    status_code = status.HTTP_409_CONFLICT


class ReplayDetected(ForumError):
    """Raised when a transaction hash has already authorized another action."""

    kind = "replay_detected"
    status_code = status.HTTP_409_CONFLICT


class Conflict(ForumError):
    """Raised when a uniqueness constraint such as a username is violated."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class ChainVerificationFailed(ForumError):
    """Raised when the chain rejects a submitted transaction."""

    kind = "chain_verification_failed"
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class BackendUnavailable(ForumError):
    """Raised when a backend is down and no fallback applies."""

    kind = "backend_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


__all__ = [
    "BackendUnavailable",
    "ChainVerificationFailed",
    "Conflict",
    "DuplicateSubmission",
    "ForumError",
    "InvalidInput",
    "NotFound",
    "PermissionDenied",
    "ReplayDetected",
]
