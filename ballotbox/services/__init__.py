"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "BallotService": "ballotbox.services.ballot_service",
    "ElectionService": "ballotbox.services.election_service",
    "IdentityService": "ballotbox.services.identity_service",
    "MemoryDatabase": "ballotbox.services.memory_store",
    "NotificationService": "ballotbox.services.notification_service",
    "SupabaseService": "ballotbox.services.common",
    "TallyService": "ballotbox.services.tally_service",
    "VoteService": "ballotbox.services.vote_service",
    "VotingWindowService": "ballotbox.services.voting_window_service",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
