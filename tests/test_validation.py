# mypy: ignore-errors
"""Tests for the local input validators."""

import pytest

from irys_forum.core.errors import InvalidInput
from irys_forum.core.validation import (
    avatar_extension,
    content_hash,
    extract_hashtags,
    is_valid_address,
    is_valid_tx_hash,
    normalize_address,
    normalize_tags,
    validate_bio,
    validate_username,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("0x" + "a" * 40, True),
        ("0x" + "A1" * 20, True),
        ("0x" + "a" * 39, False),
        ("0x" + "a" * 41, False),
        ("a" * 42, False),
        ("0X" + "a" * 40, False),
        ("0x" + "g" * 40, False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_address(value, expected) -> None:
    assert is_valid_address(value) is expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("0x" + "f" * 64, True),
        ("0x" + "f" * 63, False),
        ("0x" + "f" * 65, False),
        ("f" * 66, False),
        ("0x" + "f" * 62 + "zz", False),
    ],
)
def test_is_valid_tx_hash(value, expected) -> None:
    assert is_valid_tx_hash(value) is expected


def test_normalize_address_lowercases_and_trims() -> None:
    assert normalize_address("  0x" + "AB" * 20 + " ") == "0x" + "ab" * 20


def test_normalize_address_rejects_garbage() -> None:
    with pytest.raises(InvalidInput):
        normalize_address("0x123")


@pytest.mark.parametrize("value", ["ab", "a" * 21, "has space", "dash-ed", "emoji🙂"])
def test_validate_username_rejects(value) -> None:
    with pytest.raises(InvalidInput):
        validate_username(value)


def test_validate_username_accepts_unicode_letters() -> None:
    assert validate_username(" Zoë_99 ") == "Zoë_99"


def test_validate_bio() -> None:
    assert validate_bio("  hi  ") == "hi"
    with pytest.raises(InvalidInput):
        validate_bio("x" * 501)


def test_normalize_tags() -> None:
    assert normalize_tags(["#A", "a", "", " b "], max_tags=10) == ["a", "b"]
    assert normalize_tags(None, max_tags=10) == []
    with pytest.raises(InvalidInput):
        normalize_tags(["t1", "t2", "t3"], max_tags=2)
    with pytest.raises(InvalidInput):
        normalize_tags(["x" * 33], max_tags=10)


def test_extract_hashtags() -> None:
    assert extract_hashtags("gm #Irys and #irys plus # alone #web3") == ["irys", "web3"]


def test_content_hash_separates_parts() -> None:
    assert content_hash("ab", "c") != content_hash("a", "bc")
    assert content_hash("same") == content_hash("same")


def test_avatar_extension() -> None:
    png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8
    jpeg = b"\xff\xd8\xff" + b"\x00" * 8

    assert avatar_extension("image/png", png, max_bytes=1024) == "png"
    assert avatar_extension("IMAGE/JPEG", jpeg, max_bytes=1024) == "jpg"
    with pytest.raises(InvalidInput):
        avatar_extension("image/png", png, max_bytes=4)
    with pytest.raises(InvalidInput):
        avatar_extension(None, png, max_bytes=1024)
