"""Election registry: definitions, candidates, and the lifecycle state machine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ballotbox.config import settings
from ballotbox.services.common import Database
from ballotbox.services.notification_service import NotificationService
from ballotbox.services.window import election_flags
from ballotbox.utils.errors import (
    HasVotesError,
    ImmutableStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ballotbox.utils.time import now_utc, parse_timestamp, to_iso

logger = logging.getLogger(__name__)

ELECTION_TYPES = {"presidential", "parliamentary", "local", "referendum", "poll"}
STATUSES = {"draft", "upcoming", "active", "completed", "cancelled"}
VOTING_METHODS = {"first-past-the-post", "proportional", "ranked-choice"}
TERMINAL_STATUSES = {"completed", "cancelled"}
EDITABLE_STATUSES = {"draft", "upcoming"}

# action -> (required current status, target status)
TRANSITIONS = {
    "publish": ("draft", "upcoming"),
    "start": ("upcoming", "active"),
    "end": ("active", "completed"),
}

DEFAULT_REQUIREMENTS = {
    "minimum_age": 18,
    "citizenship": True,
    "residency": False,
    "registration_required": True,
}
DEFAULT_SETTINGS = {
    "allow_multiple_votes": False,
    "require_photo_id": False,
    "anonymous_voting": True,
    "show_results": True,
}
LOCATION_KEYS = ("country", "state", "city", "district")
UPDATABLE_FIELDS = {
    "title",
    "description",
    "type",
    "start_date",
    "end_date",
    "voting_method",
    "requirements",
    "settings",
    "location",
    "tags",
    "is_public",
    "eligible_voters",
    "candidates",
}
REQUIRED_FIELDS = ("title", "description", "type", "start_date", "end_date", "candidates")
MIN_CANDIDATES = 2


def _parse_date(value: Any, field: str) -> datetime:
    try:
        parsed = parse_timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {field}") from exc
    if parsed is None:
        raise ValidationError(f"{field} is required")
    return parsed


def _flag_changes(defaults: dict[str, Any], given: dict[str, Any] | None) -> dict[str, Any]:
    return {
        key: value
        for key, value in (given or {}).items()
        if key in defaults and value is not None
    }


def _merge_flags(defaults: dict[str, Any], given: dict[str, Any] | None) -> dict[str, Any]:
    return {**defaults, **_flag_changes(defaults, given)}


def normalize_candidates(candidates: Any) -> list[dict[str, Any]]:
    """Validate a candidate list and return storage-ready payloads."""
    if not isinstance(candidates, list) or len(candidates) < MIN_CANDIDATES:
        raise ValidationError("At least 2 candidates are required")

    normalized: list[dict[str, Any]] = []
    for position, candidate in enumerate(candidates):
        name = str((candidate or {}).get("name") or "").strip()
        if not name:
            raise ValidationError("Candidate name is required")
        normalized.append(
            {
                "position": position,
                "name": name,
                "party": str(candidate.get("party") or "").strip(),
                "description": str(candidate.get("description") or "").strip(),
                "image": str(candidate.get("image") or ""),
                "vote_count": 0,
            }
        )
    return normalized


def _normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate optional definition fields shared by create and update."""
    payload: dict[str, Any] = {}
    for key in ("title", "description"):
        if key in fields:
            value = str(fields[key] or "").strip()
            if not value:
                raise ValidationError(f"{key} is required")
            payload[key] = value
    if "type" in fields:
        if fields["type"] not in ELECTION_TYPES:
            raise ValidationError("Invalid election type")
        payload["type"] = fields["type"]
    if fields.get("voting_method") is not None:
        if fields["voting_method"] not in VOTING_METHODS:
            raise ValidationError("Invalid voting method")
        payload["voting_method"] = fields["voting_method"]
    if fields.get("eligible_voters") is not None:
        eligible = int(fields["eligible_voters"])
        if eligible < 0:
            raise ValidationError("eligible_voters cannot be negative")
        payload["eligible_voters"] = eligible
    if fields.get("location") is not None:
        payload["location"] = {
            key: fields["location"].get(key) for key in LOCATION_KEYS if fields["location"].get(key)
        }
    if fields.get("tags") is not None:
        payload["tags"] = [str(tag).strip() for tag in fields["tags"] if str(tag).strip()]
    if fields.get("is_public") is not None:
        payload["is_public"] = bool(fields["is_public"])
    return payload


class ElectionService:
    """Manage election definitions and lifecycle transitions."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.notifications = NotificationService(db)

    def _row(self, election_id: str) -> dict[str, Any]:
        return self.db.select_one("elections", {"id": str(election_id)}, not_found_label="Election")

    def candidates(self, election_id: str) -> list[dict[str, Any]]:
        """Return an election's candidates in ballot order."""
        return self.db.select_many(
            "election_candidates",
            filters={"election_id": str(election_id)},
            order_by="position",
        )

    def _hydrate(self, election: dict[str, Any], viewer_id: str | None = None) -> dict[str, Any]:
        payload = dict(election)
        payload["candidates"] = self.candidates(str(election["id"]))
        payload.update(election_flags(election))
        if viewer_id is not None:
            payload["has_voted"] = (
                self.db.count(
                    "election_participants",
                    {"election_id": str(election["id"]), "voter_id": str(viewer_id)},
                )
                > 0
            )
        return payload

    def _insert_candidates(self, election_id: str, candidates: list[dict[str, Any]]) -> None:
        self.db.insert_many(
            "election_candidates",
            [{**candidate, "election_id": election_id} for candidate in candidates],
        )

    def get(self, election_id: str, viewer_id: str | None = None) -> dict[str, Any]:
        """Return one election with candidates and derived status flags."""
        return self._hydrate(self._row(election_id), viewer_id=viewer_id)

    def list_elections(
        self,
        status: str | None = None,
        election_type: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """Return public elections, newest first, with pagination metadata."""
        page = max(1, page)
        limit = max(1, min(limit, settings.elections_page_size_max))
        filters: dict[str, Any] = {"is_public": True}
        if status:
            if status not in STATUSES:
                raise ValidationError("Invalid election status")
            filters["status"] = status
        if election_type:
            if election_type not in ELECTION_TYPES:
                raise ValidationError("Invalid election type")
            filters["type"] = election_type

        skip = (page - 1) * limit
        rows = self.db.select_many(
            "elections",
            filters=filters,
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=skip,
        )
        total = self.db.count("elections", filters)
        return {
            "elections": [self._hydrate(row) for row in rows],
            "pagination": {
                "current_page": page,
                "total_pages": (total + limit - 1) // limit,
                "total_elections": total,
                "has_next_page": skip + len(rows) < total,
                "has_prev_page": page > 1,
            },
        }

    def active_and_upcoming(self, upcoming_limit: int = 5) -> dict[str, list[dict[str, Any]]]:
        """Return elections open right now and the next few scheduled ones."""
        now = now_utc()
        active = [
            self._hydrate(row)
            for row in self.db.select_many(
                "elections", filters={"status": "active", "is_public": True}
            )
            if election_flags(row, now)["is_active"]
        ]
        upcoming_rows = [
            row
            for row in self.db.select_many(
                "elections",
                filters={"status": "upcoming", "is_public": True},
                order_by="start_date",
            )
            if election_flags(row, now)["is_upcoming"]
        ]
        upcoming = [self._hydrate(row) for row in upcoming_rows[:upcoming_limit]]
        return {"active_elections": active, "upcoming_elections": upcoming}

    def create(self, actor_id: str, definition: dict[str, Any]) -> dict[str, Any]:
        """Create a draft election with at least two candidates."""
        missing = [field for field in REQUIRED_FIELDS if definition.get(field) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        start = _parse_date(definition["start_date"], "start_date")
        end = _parse_date(definition["end_date"], "end_date")
        if end <= start:
            raise ValidationError("End date must be after start date")
        candidates = normalize_candidates(definition["candidates"])

        payload = {
            "voting_method": "first-past-the-post",
            "eligible_voters": 0,
            "location": {},
            "tags": [],
            "is_public": True,
            **_normalize_fields(definition),
            "status": "draft",
            "start_date": to_iso(start),
            "end_date": to_iso(end),
            "total_votes": 0,
            "requirements": _merge_flags(DEFAULT_REQUIREMENTS, definition.get("requirements")),
            "settings": _merge_flags(DEFAULT_SETTINGS, definition.get("settings")),
            "created_by": str(actor_id),
            "updated_at": to_iso(now_utc()),
        }
        election = self.db.insert_one("elections", payload)
        try:
            self._insert_candidates(str(election["id"]), candidates)
        except Exception:
            logger.error("Candidate insert failed; removing election %s", election["id"])
            self.db.delete("elections", {"id": str(election["id"])})
            raise

        logger.info("Election %s created by %s", election["id"], actor_id)
        return self._hydrate(election)

    def update(self, election_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Edit an election that has not started yet.

        Inputs are validated here against the stored row; the
        ``update_election`` procedure then re-checks the status under the
        election row lock and applies the field changes and any candidate
        swap together, so a concurrent ``start`` or vote cannot interleave.
        """
        election = self._row(election_id)
        if election["status"] not in EDITABLE_STATUSES:
            raise ImmutableStateError(election["status"])

        unknown = sorted(set(fields) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

        changes = _normalize_fields(fields)
        start = _parse_date(fields.get("start_date") or election["start_date"], "start_date")
        end = _parse_date(fields.get("end_date") or election["end_date"], "end_date")
        if end <= start:
            raise ValidationError("End date must be after start date")
        if fields.get("start_date") is not None:
            changes["start_date"] = to_iso(start)
        if fields.get("end_date") is not None:
            changes["end_date"] = to_iso(end)
        if fields.get("requirements") is not None:
            changes["requirements"] = _flag_changes(DEFAULT_REQUIREMENTS, fields["requirements"])
        if fields.get("settings") is not None:
            changes["settings"] = _flag_changes(DEFAULT_SETTINGS, fields["settings"])
        candidates = (
            normalize_candidates(fields["candidates"])
            if fields.get("candidates") is not None
            else None
        )

        rows = self.db.rpc(
            "update_election",
            {
                "p_election_id": str(election_id),
                "p_changes": changes,
                "p_candidates": candidates,
            },
        )
        result = rows[0] if rows else {"success": False, "reason": "not_found"}
        if not result.get("success"):
            reason = result.get("reason")
            logger.info("update_election rejected under lock: %s", reason)
            if reason == "immutable":
                raise ImmutableStateError(str(result.get("status")))
            if reason == "invalid_dates":
                raise ValidationError("End date must be after start date")
            raise NotFoundError("Election")

        logger.info("Election %s updated", election_id)
        return self.get(election_id)

    def _transition(self, election_id: str, source: str, target: str) -> dict[str, Any]:
        election = self._row(election_id)
        if election["status"] != source:
            raise InvalidTransitionError(election["status"], target)

        rows = self.db.update(
            "elections",
            {"id": str(election_id), "status": source},
            {"status": target, "updated_at": to_iso(now_utc())},
        )
        if not rows:
            # Another caller moved it first.
            current = self._row(election_id)
            raise InvalidTransitionError(current["status"], target)

        logger.info("Election %s moved %s -> %s", election_id, source, target)
        return rows[0]

    def _after_transition(self, event: str, election: dict[str, Any]) -> dict[str, Any]:
        self.notifications.notify(
            event,
            {"election_id": str(election["id"]), "status": election["status"]},
        )
        return self._hydrate(election)

    def publish(self, election_id: str) -> dict[str, Any]:
        """Move a draft election to upcoming."""
        source, target = TRANSITIONS["publish"]
        updated = self._transition(election_id, source, target)
        return self._after_transition("election.published", updated)

    def start(self, election_id: str) -> dict[str, Any]:
        """Open an upcoming election for voting."""
        source, target = TRANSITIONS["start"]
        updated = self._transition(election_id, source, target)
        return self._after_transition("election.started", updated)

    def end(self, election_id: str) -> dict[str, Any]:
        """Close an active election and persist it as completed."""
        source, target = TRANSITIONS["end"]
        updated = self._transition(election_id, source, target)
        return self._after_transition("election.ended", updated)

    def cancel(self, election_id: str) -> dict[str, Any]:
        """Cancel an election that has not reached a terminal status."""
        election = self._row(election_id)
        if election["status"] in TERMINAL_STATUSES:
            raise InvalidTransitionError(election["status"], "cancelled")
        updated = self._transition(election_id, election["status"], "cancelled")
        return self._after_transition("election.cancelled", updated)

    def delete(self, election_id: str) -> None:
        """Permanently remove an election that has no votes."""
        rows = self.db.rpc("delete_election", {"p_election_id": str(election_id)})
        result = rows[0] if rows else {"success": False, "reason": "not_found"}
        if result.get("success"):
            logger.info("Election %s deleted", election_id)
            return
        if result.get("reason") == "has_votes":
            raise HasVotesError()
        raise NotFoundError("Election")
