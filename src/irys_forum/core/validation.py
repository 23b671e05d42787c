"""Local input validators shared by the forum services."""

from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import Final

from irys_forum.core.errors import InvalidInput

ADDRESS_PATTERN: Final[re.Pattern[str]] = re.compile(r"0x[0-9a-fA-F]{40}")
TX_HASH_PATTERN: Final[re.Pattern[str]] = re.compile(r"0x[0-9a-fA-F]{64}")

USERNAME_MIN_LENGTH: Final[int] = 3
USERNAME_MAX_LENGTH: Final[int] = 20
# Extra characters allowed in usernames beyond Unicode letters and digits.
USERNAME_EXTRA_CHARS: Final[frozenset[str]] = frozenset({"_", "·"})

BIO_MAX_LENGTH: Final[int] = 500
TAG_MAX_LENGTH: Final[int] = 32

AVATAR_CONTENT_TYPES: Final[dict[str, str]] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}
_PNG_MAGIC: Final[bytes] = b"\x89PNG\r\n\x1a\n"
_JPEG_MAGIC: Final[bytes] = b"\xff\xd8\xff"


def is_valid_address(value: object) -> bool:
    """Return True when ``value`` is ``0x`` followed by exactly 40 hex digits."""
    return isinstance(value, str) and ADDRESS_PATTERN.fullmatch(value) is not None


def is_valid_tx_hash(value: object) -> bool:
    """Return True when ``value`` is ``0x`` followed by exactly 64 hex digits."""
    return isinstance(value, str) and TX_HASH_PATTERN.fullmatch(value) is not None


def normalize_address(value: str) -> str:
    """Validate an address and return its lower-cased canonical form.

    Raises:
        InvalidInput: If the address is not 0x plus 40 hex characters.
    """
    candidate = value.strip() if isinstance(value, str) else value
    if not is_valid_address(candidate):
        raise InvalidInput(f"Invalid address format: {value!r}")
    return candidate.lower()


def normalize_tx_hash(value: str) -> str:
    """Validate a transaction hash and return it lower-cased.

    Raises:
        InvalidInput: If the hash is not 0x plus 64 hex characters.
    """
    candidate = value.strip() if isinstance(value, str) else value
    if not is_valid_tx_hash(candidate):
        raise InvalidInput("Invalid transaction hash format")
    return candidate.lower()


def normalize_username(value: str) -> str:
    """Return the NFC-normalised, trimmed form of a username."""
    return unicodedata.normalize("NFC", value).strip()


def is_valid_username(value: str) -> bool:
    """Check the username character policy on an already-normalised value."""
    if not USERNAME_MIN_LENGTH <= len(value) <= USERNAME_MAX_LENGTH:
        return False
    return all(char.isalnum() or char in USERNAME_EXTRA_CHARS for char in value)


def validate_username(value: str) -> str:
    """Normalise and validate a username.

    Returns:
        The normalised username.

    Raises:
        InvalidInput: If the username breaks the length or character policy.
    """
    normalized = normalize_username(value)
    if not is_valid_username(normalized):
        raise InvalidInput(
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters "
            "of letters, digits or underscores"
        )
    return normalized


def validate_bio(value: str) -> str:
    """Trim a bio and enforce its maximum length."""
    bio = value.strip()
    if len(bio) > BIO_MAX_LENGTH:
        raise InvalidInput(f"Bio must be at most {BIO_MAX_LENGTH} characters")
    return bio


def page_bounds(
    limit: int | None, offset: int, *, default: int, max_size: int
) -> tuple[int, int]:
    """Resolve a limit/offset pair, rejecting pages larger than ``max_size``.

    Oversized limits are refused rather than shortened so that a page shorter
    than the requested limit always means the listing is exhausted.

    Raises:
        InvalidInput: If the limit is outside 1..max_size or the offset is negative.
    """
    limit = min(default, max_size) if limit is None else limit
    if limit < 1 or limit > max_size:
        raise InvalidInput(f"limit must be between 1 and {max_size}")
    if offset < 0:
        raise InvalidInput("offset must not be negative")
    return limit, offset


def normalize_tags(tags: list[str] | None, *, max_tags: int) -> list[str]:
    """Trim, lower-case and de-duplicate tags while keeping their order."""
    result: list[str] = []
    for raw in tags or []:
        tag = raw.strip().lstrip("#").lower()
        if not tag or tag in result:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise InvalidInput(f"Tags must be at most {TAG_MAX_LENGTH} characters")
        result.append(tag)
    if len(result) > max_tags:
        raise InvalidInput(f"At most {max_tags} tags are allowed")
    return result


def extract_hashtags(content: str) -> list[str]:
    """Collect ``#tag`` words from a body, lower-cased and de-duplicated."""
    tags: list[str] = []
    for word in content.split():
        if word.startswith("#") and len(word) > 1:
            tag = word[1:].lower()
            if tag not in tags:
                tags.append(tag)
    return tags


def content_hash(*parts: str) -> str:
    """Return the SHA-256 hex digest of the given text parts."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


def avatar_extension(content_type: str | None, data: bytes, *, max_bytes: int) -> str:
    """Validate an avatar upload and return the file extension to store it under.

    Both the declared content type and the leading magic bytes must agree on
    JPEG or PNG.

    Raises:
        InvalidInput: If the upload is empty, too large or not JPEG/PNG.
    """
    if not data:
        raise InvalidInput("Avatar file is empty")
    if len(data) > max_bytes:
        raise InvalidInput(f"Avatar must be at most {max_bytes // (1024 * 1024)}MB")
    extension = AVATAR_CONTENT_TYPES.get((content_type or "").lower())
    if extension is None:
        raise InvalidInput("Avatar must be a JPEG or PNG image")
    if extension == "png" and not data.startswith(_PNG_MAGIC):
        raise InvalidInput("Avatar content does not match PNG format")
    if extension == "jpg" and not data.startswith(_JPEG_MAGIC):
        raise InvalidInput("Avatar content does not match JPEG format")
    return extension
