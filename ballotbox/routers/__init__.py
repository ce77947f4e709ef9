"""API router package."""

from ballotbox.routers import auth, ballot, elections, users, voting_window

__all__ = [
    "auth",
    "ballot",
    "elections",
    "users",
    "voting_window",
]
