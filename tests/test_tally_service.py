"""Tally engine tests."""

from __future__ import annotations

import pytest

from ballotbox.services.election_service import ElectionService
from ballotbox.services.tally_service import (
    TallyService,
    compute_participation,
    compute_percentage,
    compute_winners,
)
from ballotbox.services.vote_service import VoteService
from ballotbox.utils.errors import NotFoundError, ResultsUnavailableError


@pytest.mark.parametrize(
    ("votes", "total", "expected"),
    [(0, 0, 0), (5, 0, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 2, 50), (3, 3, 100)],
)
def test_compute_percentage(votes: int, total: int, expected: int) -> None:
    """Percentages are whole numbers with halves rounded up and no division error."""
    assert compute_percentage(votes, total) == expected


def test_compute_winners_keeps_ties() -> None:
    """Every candidate at the top count is a winner."""
    rows = [
        {"name": "A", "vote_count": 3},
        {"name": "B", "vote_count": 3},
        {"name": "C", "vote_count": 1},
    ]
    assert [row["name"] for row in compute_winners(rows)] == ["A", "B"]
    assert compute_winners([]) == []


@pytest.mark.parametrize(
    ("voters", "eligible", "expected"),
    [(0, 0, 0.0), (5, 0, 0.0), (5, 10, 0.5), (12, 10, 1.0)],
)
def test_compute_participation(voters: int, eligible: int, expected: float) -> None:
    """Turnout is capped at 1.0 and zero without an eligible base."""
    assert compute_participation(voters, eligible) == expected


def test_results_with_no_votes(db, make_election) -> None:
    """Zero votes gives 0% everywhere and an all-tied winner set."""
    election = make_election()
    results = TallyService(db).get_results(election["id"])

    assert results["total_votes"] == 0
    assert [c["percentage"] for c in results["candidates"]] == [0, 0]
    assert {w["name"] for w in results["winners"]} == {"Alice", "Bob"}


def test_results_after_two_votes_for_one_candidate(db, make_election, make_user) -> None:
    """Two votes for A make A the sole winner at 100%."""
    election = make_election()
    alice = election["candidates"][0]
    for _ in range(2):
        VoteService(db).cast_vote(make_user()["id"], election["id"], alice["id"])

    results = TallyService(db).get_results(election["id"])

    assert results["total_votes"] == 2
    assert [(c["name"], c["vote_count"], c["percentage"]) for c in results["candidates"]] == [
        ("Alice", 2, 100),
        ("Bob", 0, 0),
    ]
    assert [w["name"] for w in results["winners"]] == ["Alice"]


def test_hidden_results_while_active(db, make_election) -> None:
    """show_results=false hides results until the election completes."""
    election = make_election(settings={"show_results": False})
    tally = TallyService(db)
    with pytest.raises(ResultsUnavailableError):
        tally.get_results(election["id"])

    ElectionService(db).end(election["id"])
    assert tally.get_results(election["id"])["status"] == "completed"


def test_participation_counts_distinct_voters(db, make_election, make_user) -> None:
    """Repeat votes from one voter count once toward turnout."""
    election = make_election(eligible_voters=4, settings={"allow_multiple_votes": True})
    alice, bob = election["candidates"]
    repeat_voter = make_user()
    service = VoteService(db)
    service.cast_vote(repeat_voter["id"], election["id"], alice["id"])
    service.cast_vote(repeat_voter["id"], election["id"], bob["id"])
    service.cast_vote(make_user()["id"], election["id"], alice["id"])

    participation = TallyService(db).get_participation(election["id"])

    assert participation["distinct_voters"] == 2
    assert participation["participation"] == 0.5


def test_results_for_missing_election(db) -> None:
    """Unknown elections are not found."""
    with pytest.raises(NotFoundError):
        TallyService(db).get_results("missing")
