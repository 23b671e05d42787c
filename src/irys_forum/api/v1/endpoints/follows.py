"""Follow graph endpoints."""

from fastapi import APIRouter

from irys_forum.schemas import FollowRequest, FollowResponse, FollowStatus

from ..dependencies import UserServiceDep

router = APIRouter(tags=["follows"])


@router.post("/follow", response_model=FollowResponse)
def follow(payload: FollowRequest, users: UserServiceDep) -> FollowResponse:
    """Follow a user; following twice reports ``success=false`` rather than failing."""
    return users.follow(payload)


@router.post("/unfollow", response_model=FollowResponse)
def unfollow(payload: FollowRequest, users: UserServiceDep) -> FollowResponse:
    return users.unfollow(payload)


@router.get("/follow/status", response_model=FollowStatus)
def follow_status(follower: str, following: str, users: UserServiceDep) -> FollowStatus:
    return users.follow_status(follower, following)
