"""Tally engine: read-only result and participation computation."""

from __future__ import annotations

import math
from typing import Any

from ballotbox.services.common import Database
from ballotbox.services.election_service import ElectionService
from ballotbox.utils.errors import ResultsUnavailableError


def compute_percentage(votes: int, total: int) -> int:
    """Return ``votes / total`` as a whole percentage, rounding halves up."""
    if total <= 0:
        return 0
    return int(math.floor(votes / total * 100 + 0.5))


def compute_winners(
    candidates: list[dict[str, Any]], key: str = "vote_count"
) -> list[dict[str, Any]]:
    """Return every candidate tied for the highest count.

    Ties are kept as multiple winners; there is no tie-break.
    """
    if not candidates:
        return []
    top = max(int(candidate.get(key) or 0) for candidate in candidates)
    return [candidate for candidate in candidates if int(candidate.get(key) or 0) == top]


def compute_participation(distinct_voters: int, eligible_voters: int) -> float:
    """Return the turnout ratio, capped at 1.0; 0.0 with no eligible voters."""
    if eligible_voters <= 0:
        return 0.0
    return min(1.0, distinct_voters / eligible_voters)


def compute_results(election: dict[str, Any], candidates: list[dict[str, Any]]) -> dict[str, Any]:
    """Build per-candidate counts, percentages and winners for an election."""
    total = int(election.get("total_votes") or 0)
    rows = [
        {
            "id": str(candidate["id"]),
            "name": candidate["name"],
            "party": candidate.get("party") or "",
            "vote_count": int(candidate.get("vote_count") or 0),
            "percentage": compute_percentage(int(candidate.get("vote_count") or 0), total),
        }
        for candidate in candidates
    ]
    return {
        "election_id": str(election["id"]),
        "title": election["title"],
        "status": election["status"],
        "total_votes": total,
        "candidates": rows,
        "winners": compute_winners(rows),
    }


def results_visible(election: dict[str, Any]) -> bool:
    """Results are public when enabled in settings or once completed."""
    show_results = bool((election.get("settings") or {}).get("show_results", True))
    return show_results or election["status"] == "completed"


class TallyService:
    """Compute tallies on demand without mutating any state."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.elections = ElectionService(db)

    def get_participation(self, election_id: str) -> dict[str, Any]:
        """Return distinct voters, eligible voters and the turnout ratio."""
        election = self.db.select_one(
            "elections", {"id": str(election_id)}, not_found_label="Election"
        )
        distinct_voters = self.db.count("election_participants", {"election_id": str(election_id)})
        eligible = int(election.get("eligible_voters") or 0)
        return {
            "election_id": str(election_id),
            "distinct_voters": distinct_voters,
            "eligible_voters": eligible,
            "participation": compute_participation(distinct_voters, eligible),
        }

    def get_results(self, election_id: str) -> dict[str, Any]:
        """Return the tally, or raise when results are hidden for now."""
        election = self.db.select_one(
            "elections", {"id": str(election_id)}, not_found_label="Election"
        )
        if not results_visible(election):
            raise ResultsUnavailableError()

        results = compute_results(election, self.elections.candidates(election_id))
        results["participation"] = self.get_participation(election_id)
        return results
