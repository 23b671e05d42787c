# mypy: ignore-errors
"""Racing writers against both stores: uniqueness and counters must hold."""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from irys_forum.core.errors import Conflict, ForumError, ReplayDetected
from irys_forum.db.session import build_engine, build_session_factory, create_tables
from irys_forum.repositories import MemoryForumRepository, SqlForumRepository
from irys_forum.repositories.base import NewPost
from tests.factories import ALICE, BOB, TX_ONE

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)
RACERS = 8


def racer_address(index: int) -> str:
    return "0x" + format(index + 1, "040x")


def race(count, action):
    """Run ``action(index)`` on ``count`` threads released together.

    Returns each call's result, or the ``ForumError`` it raised.
    """
    barrier = threading.Barrier(count)

    def run(index):
        barrier.wait()
        try:
            return action(index)
        except ForumError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(run, range(count)))


@pytest.fixture(params=["memory", "sqlite-file"])
def shared_repository(request, tmp_path):
    """A store that several threads can open connections to at once."""
    if request.param == "memory":
        yield MemoryForumRepository()
        return
    engine = build_engine(f"sqlite:///{tmp_path / 'forum.db'}", timeout_seconds=30)
    create_tables(engine)
    try:
        yield SqlForumRepository(build_session_factory(engine))
    finally:
        engine.dispose()


def make_post(repository) -> str:
    post = repository.create_post(
        NewPost(
            id=str(uuid.uuid4()),
            author_address=ALICE,
            author_name="alice",
            title="Title",
            content="Body",
            content_hash="hash-Body",
            tags=[],
            image=None,
            tx_hash=None,
            chain_post_id=None,
            created_at=NOW,
        )
    )
    return post.id


def test_one_winner_when_addresses_race_for_a_username(shared_repository) -> None:
    outcomes = race(
        RACERS, lambda index: shared_repository.register_username(racer_address(index), "alice")
    )

    failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    assert len(failures) == RACERS - 1
    assert all(isinstance(failure, Conflict) for failure in failures)
    assert shared_repository.username_taken("alice")


def test_one_name_when_an_address_registers_several_at_once(shared_repository) -> None:
    outcomes = race(
        RACERS, lambda index: shared_repository.register_username(ALICE, f"name_{index}")
    )

    winners = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    assert len(winners) == 1
    assert shared_repository.get_user(ALICE).name == winners[0].name


def test_transaction_hash_is_claimed_exactly_once(shared_repository) -> None:
    outcomes = race(
        RACERS,
        lambda index: shared_repository.claim_transaction(
            TX_ONE, "POST", racer_address(index), f"post-{index}", None
        ),
    )

    assert sum(1 for outcome in outcomes if outcome is None) == 1
    assert sum(1 for outcome in outcomes if isinstance(outcome, ReplayDetected)) == RACERS - 1


def test_likes_from_many_users_are_all_counted(shared_repository) -> None:
    post_id = make_post(shared_repository)

    outcomes = race(
        RACERS, lambda index: shared_repository.toggle_post_like(post_id, racer_address(index))
    )

    assert all(liked for _, liked in outcomes)
    assert shared_repository.get_post(post_id).likes == RACERS


def test_same_user_toggling_never_double_counts(shared_repository) -> None:
    post_id = make_post(shared_repository)

    race(RACERS, lambda index: shared_repository.toggle_post_like(post_id, BOB))

    likes = shared_repository.get_post(post_id).likes
    liked = shared_repository.liked_post_ids(BOB, [post_id])
    assert likes in (0, 1)
    assert likes == len(liked)


def _unique_violation() -> IntegrityError:
    return IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))


def test_sql_like_lost_to_a_concurrent_insert_reports_liked(sql_repository, mocker) -> None:
    post_id = make_post(sql_repository)
    sql_repository.toggle_post_like(post_id, BOB)
    mocker.patch.object(sql_repository, "_write", side_effect=_unique_violation())

    assert sql_repository.toggle_post_like(post_id, BOB) == (1, True)


def test_sql_username_unique_violation_is_a_conflict(sql_repository, mocker) -> None:
    mocker.patch.object(sql_repository, "_write", side_effect=_unique_violation())

    with pytest.raises(Conflict):
        sql_repository.register_username(ALICE, "alice")


def test_sql_transaction_unique_violation_is_a_replay(sql_repository, mocker) -> None:
    mocker.patch.object(sql_repository, "_write", side_effect=_unique_violation())

    with pytest.raises(ReplayDetected):
        sql_repository.claim_transaction(TX_ONE, "POST", ALICE, "post-1", None)
