"""User-related schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class VoterResponse(BaseModel):
    """Voter representation returned to the account owner."""

    id: str
    email: str
    name: str
    role: str
    is_active: bool
    is_verified: bool
    has_voted: bool = False
    created_at: datetime | None = None


class VoterUpdate(BaseModel):
    """Admin edit of a user record; omitted fields are left alone."""

    name: str | None = None
    role: Literal["voter", "admin"] | None = None
    is_active: bool | None = None
    is_verified: bool | None = None


class VoterEnvelope(BaseModel):
    """Single user response body."""

    user: VoterResponse
    message: str | None = None


class VoterListResponse(BaseModel):
    """All user records."""

    users: list[VoterResponse]
