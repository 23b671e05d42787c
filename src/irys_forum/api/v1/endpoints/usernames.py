"""Username registration endpoints."""

from fastapi import APIRouter, Response, status

from irys_forum.schemas import (
    UsernameAvailability,
    UsernameRegister,
    UsernameResponse,
    UsernameSync,
)

from ..dependencies import UserServiceDep

router = APIRouter(prefix="/username", tags=["usernames"])


@router.post("/register", response_model=UsernameResponse, status_code=status.HTTP_201_CREATED)
async def register_username(
    payload: UsernameRegister, users: UserServiceDep, response: Response
) -> UsernameResponse:
    """Claim a username, or adopt the one already held on chain.

    Returns 201 for a new registration and 200 when an on-chain name was synced.
    """
    result = await users.register_username(
        payload.address, payload.username, payload.transaction_hash
    )
    if result.synced_from_chain:
        response.status_code = status.HTTP_200_OK
    return result


@router.get("/check", response_model=UsernameAvailability)
def check_username(username: str, users: UserServiceDep) -> UsernameAvailability:
    return users.check_username(username)


@router.post("/sync", response_model=UsernameResponse)
async def sync_username(payload: UsernameSync, users: UserServiceDep) -> UsernameResponse:
    """Copy the contract's username for an address into the store."""
    return await users.sync_username(payload.address)
