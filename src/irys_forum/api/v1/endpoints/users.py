"""User profile, username lookup and follow-list endpoints."""

import asyncio

from fastapi import APIRouter, File, Form, Query, UploadFile

from irys_forum.schemas import (
    AvatarResponse,
    BioUpdate,
    FollowStats,
    PostOut,
    UserOut,
    UsernameLookup,
    UserProfile,
)

from ..dependencies import QueryServiceDep, UserServiceDep

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/avatar/upload", response_model=AvatarResponse)
async def upload_avatar(
    users: UserServiceDep,
    address: str = Form(...),
    avatar: UploadFile = File(...),
) -> AvatarResponse:
    """Store a JPEG or PNG avatar for ``address``.

    The upload is checked against both its declared content type and its
    leading magic bytes.
    """
    data = await avatar.read()
    return await asyncio.to_thread(users.update_avatar, address, avatar.content_type, data)


@router.post("/bio/update", response_model=UserOut)
def update_bio(payload: BioUpdate, users: UserServiceDep) -> UserOut:
    return users.update_bio(payload.address, payload.bio)


@router.get("/{address}", response_model=UserProfile)
def get_profile(
    address: str, users: UserServiceDep, viewer: str | None = None
) -> UserProfile:
    """Return a profile with follow figures relative to ``viewer``."""
    return users.get_profile(address, viewer)


@router.get("/{address}/posts", response_model=list[PostOut])
def user_posts(
    address: str,
    queries: QueryServiceDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    user_address: str | None = None,
) -> list[PostOut]:
    return queries.user_posts(address, limit, offset, user_address)


@router.get("/{address}/username", response_model=UsernameLookup)
async def get_username(address: str, users: UserServiceDep) -> UsernameLookup:
    return await users.lookup_username(address)


@router.get("/{address}/has-username", response_model=UsernameLookup)
async def has_username(address: str, users: UserServiceDep) -> UsernameLookup:
    """Report whether ``address`` has a username, checking the contract too."""
    return await users.lookup_username(address)


@router.get("/{address}/following", response_model=list[UserOut])
def following(
    address: str,
    users: UserServiceDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
) -> list[UserOut]:
    return users.following(address, limit, offset)


@router.get("/{address}/followers", response_model=list[UserOut])
def followers(
    address: str,
    users: UserServiceDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
) -> list[UserOut]:
    return users.followers(address, limit, offset)


@router.get("/{address}/friends", response_model=list[UserOut])
def friends(
    address: str,
    users: UserServiceDep,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
) -> list[UserOut]:
    """List users that ``address`` follows and who follow it back."""
    return users.friends(address, limit, offset)


@router.get("/{address}/follow-stats", response_model=FollowStats)
def follow_stats(address: str, users: UserServiceDep) -> FollowStats:
    return users.follow_stats(address)
