"""Unit tests for the ORM models defined in irys_forum.models.

These tests verify mapping correctness (table names, composite primary keys)
and that the uniqueness rules the services rely on are enforced by the
database itself.
"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from irys_forum import models
from tests.factories import ALICE, BOB, TX_ONE


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert models.User.__tablename__ == "users"
    assert models.Post.__tablename__ == "posts"
    assert models.Comment.__tablename__ == "comments"
    assert models.PostLike.__tablename__ == "post_likes"
    assert models.CommentLike.__tablename__ == "comment_likes"
    assert models.Follow.__tablename__ == "follows"
    assert models.UsedTransaction.__tablename__ == "used_transactions"
    assert models.DailyRecommendation.__tablename__ == "daily_recommendations"


def test_like_composite_primary_keys():
    """A user can like an item at most once."""
    assert {c.name for c in models.PostLike.__table__.primary_key} == {"post_id", "user_address"}
    assert {c.name for c in models.CommentLike.__table__.primary_key} == {
        "comment_id",
        "user_address",
    }


def test_username_is_unique(session):
    session.add(models.User(address=ALICE, username="alice", has_username=True))
    session.add(models.User(address=BOB, username="alice", has_username=True))
    with pytest.raises(IntegrityError):
        session.flush()


def test_follow_pair_is_unique_and_not_self(session):
    session.add(models.Follow(follower_address=ALICE, following_address=BOB))
    session.flush()

    session.add(models.Follow(follower_address=ALICE, following_address=BOB))
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()

    session.add(models.Follow(follower_address=ALICE, following_address=ALICE))
    with pytest.raises(IntegrityError):
        session.flush()


def test_used_transaction_kind_is_restricted(session):
    assert models.TX_KINDS == ("POST", "COMMENT", "USERNAME_REGISTER")
    session.add(models.UsedTransaction(tx_hash=TX_ONE, kind="VOTE", user_address=ALICE))
    with pytest.raises(IntegrityError):
        session.flush()
