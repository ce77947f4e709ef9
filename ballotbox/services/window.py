"""Voting window evaluation shared by elections and the legacy ballot.

Both paths gate votes on the same rule: the window must be enabled, must have
opened, and must not be past its closing time. Nothing here touches storage;
callers pass the stored rows and an optional ``now``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ballotbox.utils.time import milliseconds_until, now_utc, parse_timestamp

NO_SESSION_MESSAGE = "No voting session configured"


def evaluate_window(
    opens_at: datetime | None,
    closes_at: datetime,
    enabled: bool,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return ``can_vote``, ``has_started``, ``has_ended`` and ``time_remaining_ms``.

    The closing instant itself is still inside the window.
    """
    current = now or now_utc()
    has_started = opens_at is None or current >= opens_at
    has_ended = current > closes_at
    return {
        "can_vote": bool(enabled) and has_started and not has_ended,
        "has_started": has_started,
        "has_ended": has_ended,
        "time_remaining_ms": milliseconds_until(closes_at, current),
    }


def election_flags(election: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """Derive read-side lifecycle predicates for an election row.

    An election whose end has passed reads as completed even while its stored
    status is still ``active``; persisting that needs an explicit end.
    """
    current = now or now_utc()
    start = parse_timestamp(election["start_date"])
    end = parse_timestamp(election["end_date"])
    status = election["status"]
    window = evaluate_window(start, end, status == "active", current)
    return {
        "is_active": window["can_vote"],
        "is_upcoming": status == "upcoming" and current < start,
        "is_completed": status == "completed" or window["has_ended"],
        "time_remaining_ms": window["time_remaining_ms"],
    }


def window_status(record: dict[str, Any] | None, now: datetime | None = None) -> dict[str, Any]:
    """Describe the legacy single-election window; closed when unconfigured."""
    if record is None:
        return {
            "can_vote": False,
            "enabled": False,
            "has_ended": True,
            "time_remaining_ms": 0,
            "deadline": None,
            "title": None,
            "description": None,
            "message": NO_SESSION_MESSAGE,
        }

    deadline = parse_timestamp(record["deadline"])
    enabled = bool(record["allow_voting"]) and bool(record["is_voting_active"])
    window = evaluate_window(None, deadline, enabled, now)
    if window["can_vote"]:
        message = "Voting is active"
    elif window["has_ended"]:
        message = "Voting has ended"
    else:
        message = "Voting is disabled"

    return {
        "can_vote": window["can_vote"],
        "enabled": enabled,
        "has_ended": window["has_ended"],
        "time_remaining_ms": window["time_remaining_ms"],
        "deadline": deadline,
        "title": record.get("title"),
        "description": record.get("description"),
        "message": message,
    }


def closed_reason(status: dict[str, Any]) -> str:
    """Return the caller-facing reason a closed legacy window rejects votes."""
    if status["deadline"] is None:
        return NO_SESSION_MESSAGE
    if not status["enabled"]:
        return "Voting is currently disabled"
    return "Voting deadline has passed"
