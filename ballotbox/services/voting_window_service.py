"""Voting window controller for the legacy single-election ballot."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ballotbox.config import settings
from ballotbox.services.common import Database
from ballotbox.services.window import window_status
from ballotbox.utils.errors import ConflictError, NotFoundError, PastDeadlineError
from ballotbox.utils.time import now_utc, parse_timestamp, to_iso

logger = logging.getLogger(__name__)

WINDOW_ID = 1


class VotingWindowService:
    """Read and update the single voting window settings row.

    The row always has id 1; updates happen in place and there is never more
    than one authoritative record.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self) -> dict[str, Any] | None:
        """Return the settings row, or None when unconfigured."""
        rows = self.db.select_many("voting_window", filters={"id": WINDOW_ID}, limit=1)
        return rows[0] if rows else None

    def get_status(self, now: datetime | None = None) -> dict[str, Any]:
        """Return whether voting is allowed right now; closed when unconfigured."""
        return window_status(self.get(), now)

    def toggle(self) -> dict[str, Any]:
        """Flip ``allow_voting``; the deadline and active flag are untouched."""
        current = self.get()
        if current is None:
            raise NotFoundError("Voting window")

        allow_voting = not bool(current["allow_voting"])
        rows = self.db.update(
            "voting_window",
            {"id": WINDOW_ID, "allow_voting": current["allow_voting"]},
            {"allow_voting": allow_voting, "updated_at": to_iso(now_utc())},
        )
        if not rows:
            # A concurrent toggle won; report the state it produced.
            rows = [self.get()]
        logger.info("Voting %s", "enabled" if rows[0]["allow_voting"] else "disabled")
        return rows[0]

    def upsert(
        self,
        deadline: datetime | str,
        actor_id: str,
        is_voting_active: bool | None = None,
        allow_voting: bool | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Create the window or update it in place."""
        parsed = parse_timestamp(deadline)
        if parsed is None or parsed <= now_utc():
            raise PastDeadlineError()

        current = self.get()
        if current is None:
            try:
                record = self.db.insert_one(
                    "voting_window",
                    {
                        "id": WINDOW_ID,
                        "deadline": to_iso(parsed),
                        "is_voting_active": True if is_voting_active is None else is_voting_active,
                        "allow_voting": True if allow_voting is None else allow_voting,
                        "title": title or settings.default_window_title,
                        "description": description or settings.default_window_description,
                        "created_by": str(actor_id),
                        "updated_at": to_iso(now_utc()),
                    },
                )
            except ConflictError:
                # Created concurrently; fall through to the in-place update.
                current = self.get()
            else:
                logger.info("Voting window created, deadline %s", record["deadline"])
                return record

        changes = {
            "deadline": to_iso(parsed),
            "is_voting_active": (
                current["is_voting_active"] if is_voting_active is None else is_voting_active
            ),
            "allow_voting": current["allow_voting"] if allow_voting is None else allow_voting,
            "title": title or current["title"],
            "description": description or current["description"],
            "created_by": str(actor_id),
            "updated_at": to_iso(now_utc()),
        }
        rows = self.db.update("voting_window", {"id": WINDOW_ID}, changes)
        logger.info("Voting window updated, deadline %s", changes["deadline"])
        return rows[0]