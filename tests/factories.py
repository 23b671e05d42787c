# mypy: ignore-errors
"""Shared addresses, hashes and payload builders for the test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

ALICE = "0x" + "a" * 40
BOB = "0x" + "b" * 40
CAROL = "0x" + "c" * 40

TX_ONE = "0x" + "1" * 64
TX_TWO = "0x" + "2" * 64

CONTRACT = "0x" + "f" * 40


class FakeClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 14, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def post_payload(author: str, **overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "author_address": author,
        "title": "Hello",
        "content": "World",
    }
    payload.update(overrides)
    return payload


def comment_payload(author: str, **overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {"author_address": author, "content": "Nice post"}
    payload.update(overrides)
    return payload
