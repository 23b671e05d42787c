# mypy: ignore-errors
"""Tests for profiles, bios, avatars and the follow graph."""

from pathlib import Path

import pytest
from fastapi import status

from tests.factories import ALICE, BOB, CAROL, post_payload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


def _follow(client, follower, following):
    return client.post(
        "/api/follow", json={"follower_address": follower, "following_address": following}
    )


def test_unknown_profile_returns_404(client) -> None:
    response = client.get(f"/api/users/{ALICE}")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_profile_reports_activity_and_relationship(client, alice, bob) -> None:
    client.post("/api/posts", json=post_payload(ALICE))
    _follow(client, BOB, ALICE)

    profile = client.get(f"/api/users/{ALICE}", params={"viewer": BOB}).json()

    assert profile["name"] == "alice"
    assert profile["posts_count"] == 1
    assert profile["reputation"] == 10
    assert profile["followers_count"] == 1
    assert profile["is_following"] is False
    assert profile["is_followed_by"] is True
    assert profile["is_self"] is False

    own = client.get(f"/api/users/{ALICE}", params={"viewer": ALICE}).json()
    assert own["is_self"] is True


def test_update_bio(client, alice) -> None:
    response = client.post("/api/users/bio/update", json={"address": ALICE, "bio": "  gm  "})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["bio"] == "gm"


@pytest.mark.parametrize("length, expected", [(500, 200), (501, 400)])
def test_bio_length_limit(client, length, expected) -> None:
    response = client.post("/api/users/bio/update", json={"address": ALICE, "bio": "x" * length})
    assert response.status_code == expected


def test_avatar_upload_stores_file(client, test_settings, alice) -> None:
    response = client.post(
        "/api/users/avatar/upload",
        data={"address": ALICE},
        files={"avatar": ("me.png", PNG_BYTES, "image/png")},
    )

    assert response.status_code == status.HTTP_200_OK
    avatar_url = response.json()["avatar_url"]
    assert avatar_url.startswith(f"/avatars/avatar_{ALICE[2:]}_")
    assert avatar_url.endswith(".png")

    stored = Path(test_settings.avatar_dir) / avatar_url.rsplit("/", 1)[1]
    assert stored.read_bytes() == PNG_BYTES
    assert client.get(f"/api/users/{ALICE}").json()["avatar"] == avatar_url


def test_post_listing_shows_author_avatar(client, alice) -> None:
    client.post("/api/posts", json=post_payload(ALICE))
    avatar_url = client.post(
        "/api/users/avatar/upload",
        data={"address": ALICE},
        files={"avatar": ("me.jpg", JPEG_BYTES, "image/jpeg")},
    ).json()["avatar_url"]

    assert client.get("/api/posts").json()[0]["author_avatar"] == avatar_url


@pytest.mark.parametrize(
    "filename, data, content_type",
    [
        ("me.gif", b"GIF89a" + b"\x00" * 10, "image/gif"),
        ("me.png", JPEG_BYTES, "image/png"),
        ("me.jpg", PNG_BYTES, "image/jpeg"),
        ("me.png", b"", "image/png"),
    ],
)
def test_avatar_upload_rejects_bad_files(client, filename, data, content_type) -> None:
    response = client.post(
        "/api/users/avatar/upload",
        data={"address": ALICE},
        files={"avatar": (filename, data, content_type)},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_avatar_upload_rejects_oversized_file(client, backends) -> None:
    backends.settings.avatar_max_bytes = 16
    response = client.post(
        "/api/users/avatar/upload",
        data={"address": ALICE},
        files={"avatar": ("me.png", PNG_BYTES, "image/png")},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_follow_and_unfollow(client) -> None:
    response = _follow(client, ALICE, BOB)
    assert response.json() == {
        "success": True,
        "is_following": True,
        "following_count": 0,
        "followers_count": 1,
    }

    again = _follow(client, ALICE, BOB)
    assert again.status_code == status.HTTP_200_OK
    assert again.json()["success"] is False
    assert again.json()["followers_count"] == 1

    response = client.post(
        "/api/unfollow", json={"follower_address": ALICE, "following_address": BOB}
    )
    assert response.json()["success"] is True
    assert response.json()["followers_count"] == 0


def test_self_follow_is_rejected(client) -> None:
    response = _follow(client, ALICE, ALICE.upper().replace("0X", "0x"))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_follow_by_user_id(client, backends, alice) -> None:
    user_id = backends.repository.get_user(ALICE).id
    response = client.post(
        "/api/follow", json={"follower_address": BOB, "following_id": user_id}
    )
    assert response.json()["success"] is True
    assert backends.repository.is_following(BOB, ALICE)


def test_follow_request_requires_both_sides(client) -> None:
    response = client.post("/api/follow", json={"follower_address": ALICE})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_follow_status_and_stats(client) -> None:
    _follow(client, ALICE, BOB)
    _follow(client, BOB, ALICE)
    _follow(client, ALICE, CAROL)

    relation = client.get(
        "/api/follow/status", params={"follower": ALICE, "following": BOB}
    ).json()
    assert relation["is_following"] is True
    assert relation["is_mutual"] is True

    stats = client.get(f"/api/users/{ALICE}/follow-stats").json()
    assert stats == {
        "address": ALICE,
        "following_count": 2,
        "followers_count": 1,
        "mutual_follows_count": 1,
    }


def test_follow_lists(client) -> None:
    _follow(client, ALICE, BOB)
    _follow(client, BOB, ALICE)
    _follow(client, ALICE, CAROL)

    following = client.get(f"/api/users/{ALICE}/following").json()
    followers = client.get(f"/api/users/{ALICE}/followers").json()
    friends = client.get(f"/api/users/{ALICE}/friends").json()

    assert {user["address"] for user in following} == {BOB, CAROL}
    assert [user["address"] for user in followers] == [BOB]
    assert [user["address"] for user in friends] == [BOB]

    page = client.get(f"/api/users/{ALICE}/following", params={"limit": 1}).json()
    assert len(page) == 1
