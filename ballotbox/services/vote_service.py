"""Vote ledger: the cast-vote protocol for multi-election voting."""

from __future__ import annotations

import logging
from typing import Any

from ballotbox.services.common import Database
from ballotbox.services.election_service import ElectionService
from ballotbox.services.identity_service import IdentityService, is_eligible
from ballotbox.services.notification_service import NotificationService
from ballotbox.services.window import election_flags
from ballotbox.utils.errors import (
    CandidateNotFoundError,
    DuplicateVoteError,
    ElectionNotFoundError,
    ElectionNotOpenError,
    IneligibleVoterError,
    NotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)


class VoteService:
    """Admit votes into the ledger, at most one per voter per election."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.elections = ElectionService(db)
        self.identity = IdentityService(db)
        self.notifications = NotificationService(db)

    def _open_election(self, election_id: str) -> dict[str, Any]:
        try:
            election = self.db.select_one("elections", {"id": str(election_id)})
        except NotFoundError as exc:
            raise ElectionNotFoundError() from exc
        if not election_flags(election)["is_active"]:
            raise ElectionNotOpenError()
        return election

    def cast_vote(self, voter_id: str, election_id: str, candidate_id: str) -> dict[str, Any]:
        """Record one vote.

        Preconditions are checked in a fixed order and the first failure is
        raised before anything is written. The ``cast_vote`` procedure then
        re-checks them under a lock and applies the participant row, both
        counters and the audit row together, so a concurrent duplicate from
        the same voter loses with ``DuplicateVoteError``.
        """
        election = self._open_election(election_id)

        voter = self.identity.find_voter(voter_id)
        if not is_eligible(voter):
            raise IneligibleVoterError()

        allow_multiple = bool((election.get("settings") or {}).get("allow_multiple_votes"))
        if not allow_multiple and self.identity.has_voted(voter_id, election_id):
            raise DuplicateVoteError()

        candidate_ids = {str(row["id"]) for row in self.elections.candidates(election_id)}
        if str(candidate_id) not in candidate_ids:
            raise CandidateNotFoundError()

        rows = self.db.rpc(
            "cast_vote",
            {
                "p_election_id": str(election_id),
                "p_voter_id": str(voter_id),
                "p_candidate_id": str(candidate_id),
            },
        )
        if not rows:
            logger.error("cast_vote returned no result for election %s", election_id)
            raise StorageError()
        result = rows[0]
        if not result.get("success"):
            self._raise_for_reason(str(result.get("reason") or ""))

        logger.info(
            "Vote recorded in election %s (total %s)", election_id, result.get("total_votes")
        )
        self.notifications.notify(
            "vote.cast",
            {"election_id": str(election_id), "total_votes": result.get("total_votes")},
        )
        return self.elections.get(election_id, viewer_id=voter_id)

    @staticmethod
    def _raise_for_reason(reason: str) -> None:
        logger.info("cast_vote rejected under lock: %s", reason)
        if reason == "election_not_open":
            raise ElectionNotOpenError()
        if reason == "voter_not_eligible":
            raise IneligibleVoterError()
        if reason == "already_voted":
            raise DuplicateVoteError()
        if reason == "candidate_not_found":
            raise CandidateNotFoundError()
        logger.error("cast_vote failed with unexpected reason %r", reason)
        raise StorageError()
