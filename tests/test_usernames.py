# mypy: ignore-errors
"""Tests for username registration, availability and lookup."""

import unicodedata

import pytest
from fastapi import status

from tests.factories import ALICE, BOB, TX_ONE


def _register(client, address, username, **extra):
    return client.post(
        "/api/username/register", json={"address": address, "username": username, **extra}
    )


def test_register_username(client, backends) -> None:
    response = _register(client, ALICE, "alice")

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["success"] is True
    assert response.json()["username"] == "alice"
    assert response.json()["synced_from_chain"] is False
    assert backends.repository.get_user(ALICE).has_username is True


@pytest.mark.parametrize(
    "username, expected",
    [
        ("ab", status.HTTP_400_BAD_REQUEST),
        ("abc", status.HTTP_201_CREATED),
        ("a" * 20, status.HTTP_201_CREATED),
        ("a" * 21, status.HTTP_400_BAD_REQUEST),
        ("bad name", status.HTTP_400_BAD_REQUEST),
        ("semi;colon", status.HTTP_400_BAD_REQUEST),
        ("under_score", status.HTTP_201_CREATED),
        ("用户名", status.HTTP_201_CREATED),
    ],
)
def test_username_policy(client, username, expected) -> None:
    assert _register(client, ALICE, username).status_code == expected


def test_username_is_trimmed(client) -> None:
    response = _register(client, ALICE, "  alice  ")
    assert response.json()["username"] == "alice"


def test_taken_username_conflicts(client) -> None:
    _register(client, ALICE, "alice")

    response = _register(client, BOB, "alice")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"] == "conflict"


def test_address_cannot_register_twice(client) -> None:
    _register(client, ALICE, "alice")

    response = _register(client, ALICE, "alice2")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "Address already has a username"


def test_username_is_nfc_normalised(client) -> None:
    decomposed = unicodedata.normalize("NFD", "café")
    composed = unicodedata.normalize("NFC", "café")
    assert decomposed != composed

    assert _register(client, ALICE, decomposed).json()["username"] == composed
    assert _register(client, BOB, composed).status_code == status.HTTP_409_CONFLICT


def test_check_username(client) -> None:
    _register(client, ALICE, "alice")

    taken = client.get("/api/username/check", params={"username": "alice"}).json()
    free = client.get("/api/username/check", params={"username": "bob"}).json()
    invalid = client.get("/api/username/check", params={"username": "x"}).json()

    assert taken == {"username": "alice", "valid": True, "available": False}
    assert free == {"username": "bob", "valid": True, "available": True}
    assert invalid == {"username": "x", "valid": False, "available": False}


def test_username_lookup(client) -> None:
    before = client.get(f"/api/users/{ALICE}/has-username").json()
    assert before == {"address": ALICE, "username": None, "has_username": False}

    _register(client, ALICE, "alice")

    after = client.get(f"/api/users/{ALICE}/username").json()
    assert after == {"address": ALICE, "username": "alice", "has_username": True}


def test_register_with_transaction_claims_it(client, backends) -> None:
    response = _register(client, ALICE, "alice", transaction_hash=TX_ONE)

    assert response.status_code == status.HTTP_201_CREATED
    assert backends.repository.is_transaction_used(TX_ONE)

    replay = _register(client, BOB, "bob", transaction_hash=TX_ONE)
    assert replay.status_code == status.HTTP_409_CONFLICT
    assert replay.json()["error"] == "replay_detected"


def test_sync_without_chain_reports_nothing_found(client) -> None:
    response = client.post("/api/username/sync", json={"address": ALICE})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is False


def test_sync_for_named_address_is_a_no_op(client) -> None:
    _register(client, ALICE, "alice")

    response = client.post("/api/username/sync", json={"address": ALICE})
    assert response.json()["success"] is True
    assert response.json()["username"] == "alice"
