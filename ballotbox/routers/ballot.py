"""Legacy single-election ballot endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from ballotbox.dependencies import get_current_voter, get_db, require_admin
from ballotbox.schemas.voting import (
    BallotCandidateCreate,
    BallotCandidateUpdate,
    BallotResultsResponse,
    BallotVoteCreate,
)
from ballotbox.services.ballot_service import BallotService
from ballotbox.services.common import Database
from ballotbox.utils.errors import ForbiddenError

router = APIRouter()


@router.get("/candidates")
def list_candidates(db: Database = Depends(get_db)) -> dict:
    """List ballot candidates by name."""
    return {"candidates": BallotService(db).list_candidates()}


@router.post("/candidates", status_code=201)
def add_candidate(
    payload: BallotCandidateCreate,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Add a ballot candidate."""
    candidate = BallotService(db).add_candidate(
        name=payload.name, position=payload.position, photo_url=payload.photo_url
    )
    return {"candidate": candidate, "message": "Candidate added successfully"}


@router.put("/candidates/{candidate_id}")
def update_candidate(
    candidate_id: str,
    payload: BallotCandidateUpdate,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Update a ballot candidate."""
    candidate = BallotService(db).update_candidate(candidate_id, payload.model_dump())
    return {"candidate": candidate}


@router.delete("/candidates/{candidate_id}", status_code=204)
def remove_candidate(
    candidate_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Response:
    """Remove a ballot candidate."""
    BallotService(db).remove_candidate(candidate_id)
    return Response(status_code=204)


@router.post("/vote")
def cast_ballot(
    payload: BallotVoteCreate,
    voter: dict[str, Any] = Depends(get_current_voter),
    db: Database = Depends(get_db),
) -> dict:
    """Cast the caller's single ballot vote."""
    if voter.get("role") != "voter":
        raise ForbiddenError("Only voters can cast ballots")
    return BallotService(db).cast(voter_id=str(voter["id"]), candidate_id=payload.candidate_id)


@router.get("/results", response_model=BallotResultsResponse)
def ballot_results(db: Database = Depends(get_db)) -> dict:
    """Return the ballot tally."""
    return BallotService(db).results()
