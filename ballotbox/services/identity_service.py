"""Voter records and per-election voted membership."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

from ballotbox.config import settings
from ballotbox.services.common import Database
from ballotbox.utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ROLES = {"voter", "admin"}
UPDATABLE_VOTER_FIELDS = ("name", "role", "is_active", "is_verified")

_voter_cache: dict[str, tuple[float, dict[str, Any]]] = {}
_cache_lock = threading.Lock()


def _cache_get(key: str) -> dict[str, Any] | None:
    now = time.monotonic()
    with _cache_lock:
        entry = _voter_cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            _voter_cache.pop(key, None)
            return None
        return dict(value)


def _cache_set(key: str, value: dict[str, Any]) -> None:
    ttl_seconds = settings.voter_cache_ttl_seconds
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        if len(_voter_cache) >= max(100, settings.data_cache_max_entries):
            oldest_key = next(iter(_voter_cache))
            _voter_cache.pop(oldest_key, None)
        _voter_cache[key] = (time.monotonic() + ttl_seconds, dict(value))


def _cache_drop(key: str) -> None:
    with _cache_lock:
        _voter_cache.pop(key, None)


def is_eligible(voter: dict[str, Any] | None) -> bool:
    """Return True for an existing, active and verified voter."""
    return bool(voter and voter.get("is_active") and voter.get("is_verified"))


class IdentityService:
    """Identity store: voters, admins and their voted flags."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def find_voter(self, voter_id: str) -> dict[str, Any] | None:
        """Return a voter record or None when unknown."""
        key = str(voter_id)
        cached = _cache_get(key)
        if cached is not None:
            return cached

        rows = self.db.select_many("users", filters={"id": key}, limit=1)
        if not rows:
            return None
        _cache_set(key, rows[0])
        return rows[0]

    def get_voter(self, voter_id: str) -> dict[str, Any]:
        """Return a voter record or raise NotFoundError."""
        voter = self.find_voter(voter_id)
        if voter is None:
            raise NotFoundError("Voter")
        return voter

    def has_voted(self, voter_id: str, election_id: str) -> bool:
        """Return whether the voter is in the election's voted set."""
        return (
            self.db.count(
                "election_participants",
                {"election_id": str(election_id), "voter_id": str(voter_id)},
            )
            > 0
        )

    def set_voted(self, voter_id: str, election_id: str) -> bool:
        """Add the voter to the election's voted set.

        Returns True when the flag was newly set and False when it was already
        set; the unique key decides between concurrent callers.
        """
        try:
            self.db.insert_one(
                "election_participants",
                {"election_id": str(election_id), "voter_id": str(voter_id)},
            )
        except ConflictError:
            return False
        return True

    def create_voter(
        self,
        email: str,
        name: str,
        role: str = "voter",
        voter_id: str | None = None,
        is_verified: bool = True,
    ) -> dict[str, Any]:
        """Create a voter or admin record."""
        normalized_email = email.strip().lower()
        if not normalized_email or "@" not in normalized_email:
            raise ValidationError("A valid email is required")
        if role not in ROLES:
            raise ValidationError("Role must be either voter or admin")

        payload: dict[str, Any] = {
            "email": normalized_email,
            "name": name.strip(),
            "role": role,
            "is_active": True,
            "is_verified": is_verified,
            "has_voted": False,
        }
        if voter_id:
            payload["id"] = str(voter_id)
        try:
            return self.db.insert_one("users", payload)
        except ConflictError as exc:
            raise ConflictError(
                "A user with this email already exists", code="EMAIL_TAKEN"
            ) from exc

    def list_voters(self, role: str | None = None) -> list[dict[str, Any]]:
        """Return every user record, newest first, optionally for one role."""
        filters: dict[str, Any] = {}
        if role is not None:
            if role not in ROLES:
                raise ValidationError("Role must be either voter or admin")
            filters["role"] = role
        return self.db.select_many(
            "users", filters=filters or None, order_by="created_at", descending=True
        )

    def update_voter(self, voter_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Change a voter's name, role, or active and verified flags."""
        changes = {
            key: fields[key] for key in UPDATABLE_VOTER_FIELDS if fields.get(key) is not None
        }
        if "name" in changes:
            changes["name"] = str(changes["name"]).strip()
            if not changes["name"]:
                raise ValidationError("Name cannot be empty")
        if "role" in changes and changes["role"] not in ROLES:
            raise ValidationError("Role must be either voter or admin")
        if not changes:
            return self.get_voter(voter_id)

        rows = self.db.update("users", {"id": str(voter_id)}, changes)
        _cache_drop(str(voter_id))
        if not rows:
            raise NotFoundError("Voter")
        logger.info("Voter %s updated: %s", voter_id, ", ".join(sorted(changes)))
        return rows[0]

    def delete_voter(self, voter_id: str) -> None:
        """Remove a voter that has never voted; ballots keep their audit rows."""
        key = str(voter_id)
        self.get_voter(key)
        if (
            self.db.count("election_participants", {"voter_id": key}) > 0
            or self.db.count("ballot_votes", {"voter_id": key}) > 0
        ):
            raise ConflictError("Cannot delete a voter who has voted", code="HAS_VOTES")

        rows = self.db.delete("users", {"id": key})
        _cache_drop(key)
        if not rows:
            raise NotFoundError("Voter")
        logger.info("Voter %s deleted", voter_id)

    def reset_voted(self, voter_id: str) -> dict[str, Any]:
        """Clear the legacy global voted flag (administrative action only)."""
        rows = self.db.update("users", {"id": str(voter_id)}, {"has_voted": False})
        if not rows:
            raise NotFoundError("Voter")
        _cache_drop(str(voter_id))
        return rows[0]

    def forget(self, voter_id: str) -> None:
        """Drop a cached voter record after its flags changed."""
        _cache_drop(str(voter_id))
