"""Voting window endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ballotbox.dependencies import get_db, require_admin
from ballotbox.schemas.voting import (
    VotingStatusResponse,
    VotingWindowEnvelope,
    VotingWindowUpsert,
)
from ballotbox.services.common import Database
from ballotbox.services.voting_window_service import VotingWindowService

router = APIRouter()


@router.get("", response_model=VotingWindowEnvelope)
def get_voting_window(db: Database = Depends(get_db)) -> dict:
    """Return the stored window settings, or null when unconfigured."""
    return {"window": VotingWindowService(db).get()}


@router.get("/status", response_model=VotingStatusResponse)
def get_voting_status(db: Database = Depends(get_db)) -> dict:
    """Return whether voting is allowed right now."""
    return VotingWindowService(db).get_status()


@router.post("", response_model=VotingWindowEnvelope)
def upsert_voting_window(
    payload: VotingWindowUpsert,
    admin: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Create or update the voting window."""
    window = VotingWindowService(db).upsert(
        deadline=payload.deadline,
        actor_id=str(admin["id"]),
        is_voting_active=payload.is_voting_active,
        allow_voting=payload.allow_voting,
        title=payload.title,
        description=payload.description,
    )
    return {"window": window, "message": "Voting settings updated successfully"}


@router.put("/toggle", response_model=VotingWindowEnvelope)
def toggle_voting(
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Enable or disable voting without touching the deadline."""
    window = VotingWindowService(db).toggle()
    state = "enabled" if window["allow_voting"] else "disabled"
    return {"window": window, "message": f"Voting {state} successfully"}
