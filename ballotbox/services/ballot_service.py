"""Legacy single-election ballot gated by the voting window."""

from __future__ import annotations

import logging
from typing import Any

from ballotbox.services.common import Database
from ballotbox.services.identity_service import IdentityService, is_eligible
from ballotbox.services.notification_service import NotificationService
from ballotbox.services.tally_service import compute_percentage
from ballotbox.services.voting_window_service import VotingWindowService
from ballotbox.services.window import closed_reason
from ballotbox.utils.errors import (
    CandidateNotFoundError,
    DuplicateVoteError,
    ElectionNotOpenError,
    IneligibleVoterError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

CANDIDATE_FIELDS = ("name", "position", "photo_url")


class BallotService:
    """One ballot, one global voted flag per voter."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.identity = IdentityService(db)
        self.window = VotingWindowService(db)
        self.notifications = NotificationService(db)

    def list_candidates(self) -> list[dict[str, Any]]:
        """Return ballot candidates sorted by name."""
        return self.db.select_many("ballot_candidates", order_by="name")

    def add_candidate(self, name: str, position: str, photo_url: str = "") -> dict[str, Any]:
        """Add a ballot candidate."""
        name, position = name.strip(), position.strip()
        if not name or not position:
            raise ValidationError("Name and position are required")
        return self.db.insert_one(
            "ballot_candidates",
            {"name": name, "position": position, "photo_url": photo_url or "", "votes": 0},
        )

    def update_candidate(self, candidate_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Apply non-empty name/position/photo changes to a candidate."""
        changes = {key: fields[key] for key in CANDIDATE_FIELDS if fields.get(key)}
        if not changes:
            return self.db.select_one(
                "ballot_candidates", {"id": str(candidate_id)}, not_found_label="Candidate"
            )
        rows = self.db.update("ballot_candidates", {"id": str(candidate_id)}, changes)
        if not rows:
            raise NotFoundError("Candidate")
        return rows[0]

    def remove_candidate(self, candidate_id: str) -> None:
        """Delete a candidate."""
        rows = self.db.delete("ballot_candidates", {"id": str(candidate_id)})
        if not rows:
            raise NotFoundError("Candidate")

    def cast(self, voter_id: str, candidate_id: str) -> dict[str, Any]:
        """Cast the voter's single ballot vote while the window is open."""
        status = self.window.get_status()
        if not status["can_vote"]:
            raise ElectionNotOpenError(closed_reason(status))

        voter = self.identity.find_voter(voter_id)
        if not is_eligible(voter):
            raise IneligibleVoterError()
        if voter["has_voted"]:
            raise DuplicateVoteError()

        if self.db.count("ballot_candidates", {"id": str(candidate_id)}) == 0:
            raise CandidateNotFoundError()

        rows = self.db.rpc(
            "cast_ballot_vote",
            {"p_voter_id": str(voter_id), "p_candidate_id": str(candidate_id)},
        )
        result = rows[0] if rows else {}
        if not result.get("success"):
            self._raise_for_reason(str(result.get("reason") or ""))

        self.identity.forget(voter_id)
        logger.info("Ballot vote recorded")
        self.notifications.notify("ballot.vote_cast", {"candidate_votes": result.get("votes")})
        return {"message": "Vote cast successfully"}

    def _raise_for_reason(self, reason: str) -> None:
        logger.info("cast_ballot_vote rejected under lock: %s", reason)
        if reason == "voting_closed":
            raise ElectionNotOpenError(closed_reason(self.window.get_status()))
        if reason == "voter_not_eligible":
            raise IneligibleVoterError()
        if reason == "already_voted":
            raise DuplicateVoteError()
        if reason == "candidate_not_found":
            raise CandidateNotFoundError()
        logger.error("cast_ballot_vote failed with unexpected reason %r", reason)
        raise StorageError()

    def results(self) -> dict[str, Any]:
        """Return candidates by votes with whole percentages."""
        candidates = self.db.select_many("ballot_candidates", order_by="votes", descending=True)
        total = sum(int(candidate.get("votes") or 0) for candidate in candidates)
        return {
            "results": [
                {
                    **candidate,
                    "percentage": compute_percentage(int(candidate.get("votes") or 0), total),
                }
                for candidate in candidates
            ],
            "total_votes": total,
        }
