"""Authentication endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ballotbox.dependencies import get_current_voter
from ballotbox.schemas.user import VoterResponse

router = APIRouter()


@router.get("/session", response_model=VoterResponse)
def auth_session(voter: dict[str, Any] = Depends(get_current_voter)) -> dict:
    """Return the voter record behind the bearer token."""
    return voter
