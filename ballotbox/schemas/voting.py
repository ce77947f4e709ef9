"""Voting window and legacy ballot schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class VotingWindowUpsert(BaseModel):
    """Request body for creating or updating the voting window."""

    deadline: datetime
    is_voting_active: bool | None = None
    allow_voting: bool | None = None
    title: str | None = None
    description: str | None = None


class VotingWindowResponse(BaseModel):
    """Stored voting window settings."""

    deadline: datetime
    is_voting_active: bool
    allow_voting: bool
    title: str
    description: str
    created_by: str | None = None
    updated_at: datetime | None = None


class VotingWindowEnvelope(BaseModel):
    """Window settings, null when unconfigured."""

    window: VotingWindowResponse | None = None
    message: str | None = None


class VotingStatusResponse(BaseModel):
    """Whether voting is allowed right now."""

    can_vote: bool
    has_ended: bool
    time_remaining_ms: int
    deadline: datetime | None = None
    title: str | None = None
    description: str | None = None
    message: str


class BallotCandidateCreate(BaseModel):
    """Request body for adding a ballot candidate."""

    name: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    photo_url: str = ""


class BallotCandidateUpdate(BaseModel):
    """Partial candidate update; empty values are ignored."""

    name: str | None = None
    position: str | None = None
    photo_url: str | None = None


class BallotCandidateResponse(BaseModel):
    """Ballot candidate with its count."""

    id: str
    name: str
    position: str
    photo_url: str = ""
    votes: int = 0


class BallotVoteCreate(BaseModel):
    """Request body for the single ballot vote."""

    candidate_id: str = Field(..., min_length=1)


class BallotResult(BallotCandidateResponse):
    """Candidate line with its share of the vote."""

    percentage: int


class BallotResultsResponse(BaseModel):
    """Legacy ballot tally."""

    results: list[BallotResult]
    total_votes: int
