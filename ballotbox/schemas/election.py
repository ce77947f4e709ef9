"""Election schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ElectionType = Literal["presidential", "parliamentary", "local", "referendum", "poll"]
VotingMethod = Literal["first-past-the-post", "proportional", "ranked-choice"]


class CandidateCreate(BaseModel):
    """Candidate entry in an election definition."""

    name: str = Field(..., min_length=1)
    party: str = ""
    description: str = ""
    image: str = ""


class Requirements(BaseModel):
    """Eligibility requirements; omitted fields keep their defaults."""

    minimum_age: int | None = Field(None, ge=0)
    citizenship: bool | None = None
    residency: bool | None = None
    registration_required: bool | None = None


class ElectionSettings(BaseModel):
    """Voting behaviour flags; omitted fields keep their defaults."""

    allow_multiple_votes: bool | None = None
    require_photo_id: bool | None = None
    anonymous_voting: bool | None = None
    show_results: bool | None = None


class Location(BaseModel):
    """Where the election takes place."""

    country: str | None = None
    state: str | None = None
    city: str | None = None
    district: str | None = None


class ElectionCreate(BaseModel):
    """Request body for creating an election."""

    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10)
    type: ElectionType
    start_date: datetime
    end_date: datetime
    candidates: list[CandidateCreate] = Field(..., min_length=2)
    voting_method: VotingMethod | None = None
    eligible_voters: int | None = Field(None, ge=0)
    requirements: Requirements | None = None
    settings: ElectionSettings | None = None
    location: Location | None = None
    tags: list[str] | None = None
    is_public: bool | None = None


class ElectionUpdate(BaseModel):
    """Request body for editing a draft or upcoming election."""

    title: str | None = Field(None, min_length=5, max_length=100)
    description: str | None = Field(None, min_length=10)
    type: ElectionType | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    candidates: list[CandidateCreate] | None = Field(None, min_length=2)
    voting_method: VotingMethod | None = None
    eligible_voters: int | None = Field(None, ge=0)
    requirements: Requirements | None = None
    settings: ElectionSettings | None = None
    location: Location | None = None
    tags: list[str] | None = None
    is_public: bool | None = None


class VoteCreate(BaseModel):
    """Request body for casting a vote."""

    candidate_id: str = Field(..., min_length=1)


class CandidateResponse(BaseModel):
    """A candidate with its running count."""

    id: str
    election_id: str
    position: int
    name: str
    party: str = ""
    description: str = ""
    image: str = ""
    vote_count: int = 0


class ElectionResponse(BaseModel):
    """Election representation with derived status flags."""

    id: str
    title: str
    description: str
    type: str
    status: str
    start_date: datetime
    end_date: datetime
    total_votes: int
    eligible_voters: int = 0
    voting_method: str
    requirements: dict
    settings: dict
    location: dict = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    is_public: bool
    created_by: str
    candidates: list[CandidateResponse] = Field(default_factory=list)
    is_active: bool
    is_upcoming: bool
    is_completed: bool
    time_remaining_ms: int
    has_voted: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CandidateResult(BaseModel):
    """One candidate line in a tally."""

    id: str
    name: str
    party: str = ""
    vote_count: int
    percentage: int


class ParticipationResponse(BaseModel):
    """Turnout for an election."""

    election_id: str
    distinct_voters: int
    eligible_voters: int
    participation: float


class ResultsResponse(BaseModel):
    """Tally for an election."""

    election_id: str
    title: str
    status: str
    total_votes: int
    candidates: list[CandidateResult]
    winners: list[CandidateResult]
    participation: ParticipationResponse


class ElectionEnvelope(BaseModel):
    """Single-election response body."""

    election: ElectionResponse
    message: str | None = None


class Pagination(BaseModel):
    """Page metadata for election listings."""

    current_page: int
    total_pages: int
    total_elections: int
    has_next_page: bool
    has_prev_page: bool


class ElectionListResponse(BaseModel):
    """A page of public elections."""

    elections: list[ElectionResponse]
    pagination: Pagination


class ActiveUpcomingResponse(BaseModel):
    """Elections open now and the next scheduled ones."""

    active_elections: list[ElectionResponse]
    upcoming_elections: list[ElectionResponse]
