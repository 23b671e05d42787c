"""Usernames, profiles and the follow graph."""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

from irys_forum.core.errors import Conflict, InvalidInput, NotFound
from irys_forum.core.settings import Settings
from irys_forum.core.validation import (
    avatar_extension,
    is_valid_username,
    normalize_address,
    normalize_username,
    page_bounds,
    validate_bio,
    validate_username,
)
from irys_forum.repositories import ForumRepository
from irys_forum.schemas import (
    AvatarResponse,
    FollowRequest,
    FollowResponse,
    FollowStats,
    FollowStatus,
    UserOut,
    UsernameAvailability,
    UsernameLookup,
    UsernameResponse,
    UserProfile,
)

from .cache import PostCache
from .chain import ChainVerifier

logger = logging.getLogger(__name__)

DEFAULT_FOLLOW_PAGE_SIZE = 20


class UserService:
    """Identity operations keyed by wallet address."""

    def __init__(
        self,
        repository: ForumRepository,
        cache: PostCache,
        verifier: ChainVerifier,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.verifier = verifier
        self.settings = settings

    # --- usernames --------------------------------------------------------------
    async def _chain_username(self, address: str) -> str | None:
        """Return the contract's username for ``address`` if it passes local rules."""
        raw = await self.verifier.username_on_chain(address)
        if not raw:
            return None
        try:
            return validate_username(raw)
        except InvalidInput as exc:
            logger.warning("Ignoring on-chain username for %s: %s", address, exc.message)
            return None

    def _store_chain_username(self, address: str, username: str) -> str | None:
        try:
            self.repository.register_username(address, username)
        except Conflict as exc:
            logger.warning("Could not sync on-chain username for %s: %s", address, exc)
            return None
        logger.info("Synced on-chain username for %s: %s", address, username)
        return username

    async def username_for(self, address: str) -> str | None:
        """Return the username of ``address``, pulling it from the chain if needed."""
        user = await asyncio.to_thread(self.repository.get_user, address)
        if user is not None and user.has_username:
            return user.name
        chain_username = await self._chain_username(address)
        if chain_username:
            return await asyncio.to_thread(self._store_chain_username, address, chain_username)
        return None

    async def register_username(
        self, address: str, username: str, tx_hash: str | None = None
    ) -> UsernameResponse:
        """Claim ``username`` for ``address``.

        If the contract already holds a username for the address, that one is
        synced instead of the requested name.

        Raises:
            InvalidInput: If the address or username is malformed.
            Conflict: If the name is taken or the address already has one.
        """
        address = normalize_address(address)
        username = validate_username(username)

        existing = await asyncio.to_thread(self.repository.get_user, address)
        if existing is not None and existing.has_username:
            raise Conflict("Address already has a username")

        chain_username = await self._chain_username(address)
        if chain_username:
            synced = await asyncio.to_thread(self._store_chain_username, address, chain_username)
            if synced is None:
                raise Conflict("On-chain username is already taken by another address")
            return UsernameResponse(
                success=True,
                username=synced,
                message="Username already registered on chain; synced",
                synced_from_chain=True,
            )

        if await asyncio.to_thread(self.repository.username_taken, username):
            raise Conflict("Username is already taken")
        if tx_hash:
            await self.verifier.authorize(tx_hash, "USERNAME_REGISTER", address, username)

        user = await asyncio.to_thread(self.repository.register_username, address, username)
        logger.info("Registered username %s for %s", user.name, address)
        return UsernameResponse(success=True, username=user.name, message="Username registered")

    def check_username(self, username: str) -> UsernameAvailability:
        """Report whether ``username`` is well-formed and unclaimed."""
        normalized = normalize_username(username)
        valid = is_valid_username(normalized)
        available = valid and not self.repository.username_taken(normalized)
        return UsernameAvailability(username=normalized, valid=valid, available=available)

    async def lookup_username(self, address: str) -> UsernameLookup:
        address = normalize_address(address)
        username = await self.username_for(address)
        return UsernameLookup(address=address, username=username, has_username=username is not None)

    async def sync_username(self, address: str) -> UsernameResponse:
        """Copy the contract's username for ``address`` into the store."""
        address = normalize_address(address)
        user = await asyncio.to_thread(self.repository.get_user, address)
        if user is not None and user.has_username:
            return UsernameResponse(
                success=True, username=user.name, message="Username already synced"
            )
        chain_username = await self._chain_username(address)
        if not chain_username:
            return UsernameResponse(success=False, message="No username found on chain")
        synced = await asyncio.to_thread(self._store_chain_username, address, chain_username)
        if synced is None:
            raise Conflict("On-chain username is already taken by another address")
        return UsernameResponse(
            success=True,
            username=synced,
            message="Username synced from chain",
            synced_from_chain=True,
        )

    # --- profiles ---------------------------------------------------------------
    def get_profile(self, address: str, viewer: str | None = None) -> UserProfile:
        """Return a user's profile with follow figures relative to ``viewer``.

        Raises:
            NotFound: If the address has never interacted with the forum.
        """
        address = normalize_address(address)
        user = self.repository.get_user(address)
        if user is None:
            raise NotFound("User not found")
        counts = self.repository.follow_counts(address)
        profile = UserProfile(
            **user.model_dump(),
            following_count=counts.following,
            followers_count=counts.followers,
            mutual_follows_count=counts.mutual,
        )
        if viewer:
            viewer = normalize_address(viewer)
            profile.is_self = viewer == address
            if not profile.is_self:
                profile.is_following = self.repository.is_following(viewer, address)
                profile.is_followed_by = self.repository.is_following(address, viewer)
                profile.is_mutual = profile.is_following and profile.is_followed_by
        return profile

    def update_bio(self, address: str, bio: str) -> UserOut:
        address = normalize_address(address)
        return self.repository.update_bio(address, validate_bio(bio))

    def update_avatar(self, address: str, content_type: str | None, data: bytes) -> AvatarResponse:
        """Store an uploaded JPEG/PNG avatar and point the profile at it."""
        address = normalize_address(address)
        extension = avatar_extension(content_type, data, max_bytes=self.settings.avatar_max_bytes)
        directory = Path(self.settings.avatar_dir)
        directory.mkdir(parents=True, exist_ok=True)
        filename = f"avatar_{address[2:]}_{uuid.uuid4().hex}.{extension}"
        (directory / filename).write_bytes(data)

        avatar_url = f"/avatars/{filename}"
        self.repository.update_avatar(address, avatar_url)
        # Cached pages embed author avatars.
        self.cache.invalidate_posts()
        logger.info("Stored avatar for %s at %s", address, avatar_url)
        return AvatarResponse(avatar_url=avatar_url)

    # --- follow graph -----------------------------------------------------------
    def _participant(self, address: str | None, user_id: str | None) -> str:
        if address:
            return normalize_address(address)
        user = self.repository.get_user_by_id(user_id or "")
        if user is None:
            raise NotFound("User not found")
        return user.address

    def _participants(self, request: FollowRequest) -> tuple[str, str]:
        follower = self._participant(request.follower_address, request.follower_id)
        following = self._participant(request.following_address, request.following_id)
        if follower == following:
            raise InvalidInput("Users cannot follow themselves")
        return follower, following

    def follow(self, request: FollowRequest) -> FollowResponse:
        follower, following = self._participants(request)
        created = self.repository.follow(follower, following)
        counts = self.repository.follow_counts(following)
        return FollowResponse(
            success=created,
            is_following=True,
            following_count=counts.following,
            followers_count=counts.followers,
        )

    def unfollow(self, request: FollowRequest) -> FollowResponse:
        follower, following = self._participants(request)
        removed = self.repository.unfollow(follower, following)
        counts = self.repository.follow_counts(following)
        return FollowResponse(
            success=removed,
            is_following=False,
            following_count=counts.following,
            followers_count=counts.followers,
        )

    def follow_status(self, follower: str, following: str) -> FollowStatus:
        follower = normalize_address(follower)
        following = normalize_address(following)
        is_following = self.repository.is_following(follower, following)
        is_followed_by = self.repository.is_following(following, follower)
        return FollowStatus(
            follower=follower,
            following=following,
            is_following=is_following,
            is_followed_by=is_followed_by,
            is_mutual=is_following and is_followed_by,
        )

    def follow_stats(self, address: str) -> FollowStats:
        address = normalize_address(address)
        counts = self.repository.follow_counts(address)
        return FollowStats(
            address=address,
            following_count=counts.following,
            followers_count=counts.followers,
            mutual_follows_count=counts.mutual,
        )

    def _page(self, limit: int | None, offset: int) -> tuple[int, int]:
        return page_bounds(
            limit, offset, default=DEFAULT_FOLLOW_PAGE_SIZE, max_size=self.settings.max_page_size
        )

    def following(self, address: str, limit: int | None = None, offset: int = 0) -> list[UserOut]:
        limit, offset = self._page(limit, offset)
        return self.repository.list_following(normalize_address(address), limit, offset)

    def followers(self, address: str, limit: int | None = None, offset: int = 0) -> list[UserOut]:
        limit, offset = self._page(limit, offset)
        return self.repository.list_followers(normalize_address(address), limit, offset)

    def friends(self, address: str, limit: int | None = None, offset: int = 0) -> list[UserOut]:
        limit, offset = self._page(limit, offset)
        return self.repository.list_mutual(normalize_address(address), limit, offset)
