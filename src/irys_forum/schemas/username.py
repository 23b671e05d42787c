# src/irys_forum/schemas/username.py
"""Username registration schemas."""

from pydantic import AliasChoices, BaseModel, Field


class UsernameRegister(BaseModel):
    """Schema for claiming a username."""

    address: str
    username: str = Field(..., max_length=64)
    transaction_hash: str | None = Field(
        None,
        validation_alias=AliasChoices("transaction_hash", "tx_hash"),
    )


class UsernameResponse(BaseModel):
    """Outcome of a register or sync call."""

    success: bool
    username: str | None = None
    message: str
    synced_from_chain: bool = False


class UsernameAvailability(BaseModel):
    """Availability of a candidate username."""

    username: str
    valid: bool
    available: bool


class UsernameLookup(BaseModel):
    """Username bound to an address, if any."""

    address: str
    username: str | None = None
    has_username: bool


class UsernameSync(BaseModel):
    """Request to pull an address's username from the chain."""

    address: str
