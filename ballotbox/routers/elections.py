"""Election endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from ballotbox.dependencies import get_current_voter, get_db, get_optional_voter, require_admin
from ballotbox.schemas.election import (
    ActiveUpcomingResponse,
    ElectionCreate,
    ElectionEnvelope,
    ElectionListResponse,
    ElectionUpdate,
    ParticipationResponse,
    ResultsResponse,
    VoteCreate,
)
from ballotbox.services.common import Database
from ballotbox.services.election_service import ElectionService
from ballotbox.services.tally_service import TallyService
from ballotbox.services.vote_service import VoteService

router = APIRouter()


@router.get("", response_model=ElectionListResponse)
def list_elections(
    status: str | None = None,
    type: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Database = Depends(get_db),
) -> dict:
    """List public elections, newest first."""
    service = ElectionService(db)
    return service.list_elections(status=status, election_type=type, page=page, limit=limit)


@router.get("/active/upcoming", response_model=ActiveUpcomingResponse)
def active_and_upcoming(db: Database = Depends(get_db)) -> dict:
    """Return elections open now and the next upcoming ones."""
    return ElectionService(db).active_and_upcoming()


@router.get("/{election_id}", response_model=ElectionEnvelope)
def get_election(
    election_id: str,
    voter: dict[str, Any] | None = Depends(get_optional_voter),
    db: Database = Depends(get_db),
) -> dict:
    """Return one election; includes has_voted for signed-in callers."""
    viewer_id = str(voter["id"]) if voter else None
    election = ElectionService(db).get(election_id, viewer_id=viewer_id)
    return {"election": election}


@router.post("", status_code=201, response_model=ElectionEnvelope)
def create_election(
    payload: ElectionCreate,
    admin: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Create a draft election."""
    election = ElectionService(db).create(
        actor_id=str(admin["id"]),
        definition=payload.model_dump(exclude_none=True),
    )
    return {"election": election}


@router.put("/{election_id}", response_model=ElectionEnvelope)
def update_election(
    election_id: str,
    payload: ElectionUpdate,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Edit a draft or upcoming election."""
    election = ElectionService(db).update(election_id, payload.model_dump(exclude_none=True))
    return {"election": election}


@router.delete("/{election_id}", status_code=204)
def delete_election(
    election_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Response:
    """Delete an election that has no votes."""
    ElectionService(db).delete(election_id)
    return Response(status_code=204)


@router.post("/{election_id}/publish", response_model=ElectionEnvelope)
def publish_election(
    election_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Move a draft election to upcoming."""
    return {"election": ElectionService(db).publish(election_id)}


@router.post("/{election_id}/start", response_model=ElectionEnvelope)
def start_election(
    election_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Open an upcoming election."""
    return {"election": ElectionService(db).start(election_id)}


@router.post("/{election_id}/end", response_model=ElectionEnvelope)
def end_election(
    election_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Complete an active election."""
    return {"election": ElectionService(db).end(election_id)}


@router.post("/{election_id}/cancel", response_model=ElectionEnvelope)
def cancel_election(
    election_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Cancel an election that has not finished."""
    return {"election": ElectionService(db).cancel(election_id)}


@router.get("/{election_id}/results", response_model=ResultsResponse)
def election_results(election_id: str, db: Database = Depends(get_db)) -> dict:
    """Return the tally when results are visible."""
    return TallyService(db).get_results(election_id)


@router.get("/{election_id}/participation", response_model=ParticipationResponse)
def election_participation(election_id: str, db: Database = Depends(get_db)) -> dict:
    """Return turnout for an election."""
    return TallyService(db).get_participation(election_id)


@router.post("/{election_id}/vote", response_model=ElectionEnvelope)
def vote_election(
    election_id: str,
    payload: VoteCreate,
    voter: dict[str, Any] = Depends(get_current_voter),
    db: Database = Depends(get_db),
) -> dict:
    """Cast a vote in an open election."""
    election = VoteService(db).cast_vote(
        voter_id=str(voter["id"]),
        election_id=election_id,
        candidate_id=payload.candidate_id,
    )
    return {"election": election, "message": "Vote cast successfully"}
