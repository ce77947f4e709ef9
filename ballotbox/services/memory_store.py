"""Process-local table store with the same surface as ``SupabaseService``.

Every read and write takes one re-entrant lock, and the named procedures run
entirely under it, so each procedure call is all-or-nothing exactly like the
Postgres functions in ``db/migrations``.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from ballotbox.services.common import duplicate_key_error
from ballotbox.services.identity_service import is_eligible
from ballotbox.services.window import evaluate_window, window_status
from ballotbox.utils.errors import NotFoundError
from ballotbox.utils.time import now_utc, parse_timestamp, to_iso

logger = logging.getLogger(__name__)

UNIQUE_KEYS: dict[str, list[tuple[str, ...]]] = {
    "users": [("id",), ("email",)],
    "election_participants": [("election_id", "voter_id")],
}
TABLES_WITHOUT_ID = {"election_participants"}
EDITABLE_STATUSES = {"draft", "upcoming"}


def _matches(row: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(row.get(key) == value for key, value in filters.items())


def _result(success: bool, reason: str, **extra: Any) -> list[dict[str, Any]]:
    return [{"success": success, "reason": reason, **extra}]


class MemoryDatabase:
    """In-memory implementation of the ``Database`` protocol."""

    def __init__(self) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._lock = threading.RLock()
        self._procedures: dict[str, Callable[..., list[dict[str, Any]]]] = {
            "cast_vote": self._cast_vote,
            "cast_ballot_vote": self._cast_ballot_vote,
            "delete_election": self._delete_election,
            "update_election": self._update_election,
        }

    def _find(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        for row in self._tables[table]:
            if _matches(row, filters):
                return row
        return None

    def _check_unique(self, table: str, row: dict[str, Any]) -> None:
        keys = list(UNIQUE_KEYS.get(table, []))
        if table not in TABLES_WITHOUT_ID and ("id",) not in keys:
            keys.append(("id",))
        for columns in keys:
            candidate = {column: row.get(column) for column in columns}
            if any(value is None for value in candidate.values()):
                continue
            if self._find(table, candidate) is not None:
                raise duplicate_key_error(table)

    def _insert(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        row = copy.deepcopy(payload)
        if table not in TABLES_WITHOUT_ID:
            row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", to_iso(now_utc()))
        self._check_unique(table, row)
        self._tables[table].append(row)
        return row

    def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
        not_found_label: str | None = None,
    ) -> dict[str, Any]:
        """Select a single row and raise NotFoundError when missing."""
        rows = self.select_many(table, filters=filters, limit=1)
        if not rows:
            raise NotFoundError(not_found_label or table)
        return rows[0]

    def select_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows by equality filters with optional ordering and paging."""
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._tables[table] if _matches(row, filters)]
        if order_by:
            rows.sort(
                key=lambda row: (row.get(order_by) is None, row.get(order_by)),
                reverse=descending,
            )
        if offset:
            rows = rows[offset:]
        if limit:
            rows = rows[:limit]
        return rows

    def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows matching equality filters."""
        with self._lock:
            return sum(1 for row in self._tables[table] if _matches(row, filters))

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return a copy of it."""
        with self._lock:
            return copy.deepcopy(self._insert(table, payload))

    def insert_many(self, table: str, payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert many rows; a duplicate anywhere inserts none of them."""
        with self._lock:
            snapshot = list(self._tables[table])
            try:
                inserted = [self._insert(table, payload) for payload in payloads]
            except Exception:
                self._tables[table] = snapshot
                raise
            return copy.deepcopy(inserted)

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update matching rows in one locked step and return them."""
        with self._lock:
            updated = []
            for row in self._tables[table]:
                if _matches(row, filters):
                    row.update(copy.deepcopy(payload))
                    updated.append(copy.deepcopy(row))
            return updated

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Delete matching rows and return them."""
        with self._lock:
            kept, removed = [], []
            for row in self._tables[table]:
                (removed if _matches(row, filters) else kept).append(row)
            self._tables[table] = kept
            return removed

    def rpc(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Run a named procedure atomically."""
        procedure = self._procedures.get(function)
        if procedure is None:
            raise NotFoundError(f"Procedure {function}")
        with self._lock:
            return procedure(**params)

    def _cast_vote(
        self, p_election_id: str, p_voter_id: str, p_candidate_id: str
    ) -> list[dict[str, Any]]:
        now = now_utc()
        election = self._find("elections", {"id": p_election_id})
        if election is None or election["status"] != "active":
            return _result(False, "election_not_open")
        window = evaluate_window(
            parse_timestamp(election["start_date"]),
            parse_timestamp(election["end_date"]),
            True,
            now,
        )
        if not window["can_vote"]:
            return _result(False, "election_not_open")

        if not is_eligible(self._find("users", {"id": p_voter_id})):
            return _result(False, "voter_not_eligible")

        participant_key = {"election_id": p_election_id, "voter_id": p_voter_id}
        already_voted = self._find("election_participants", participant_key) is not None
        allow_multiple = bool((election.get("settings") or {}).get("allow_multiple_votes"))
        if already_voted and not allow_multiple:
            return _result(False, "already_voted")

        candidate = self._find(
            "election_candidates", {"id": p_candidate_id, "election_id": p_election_id}
        )
        if candidate is None:
            return _result(False, "candidate_not_found")

        stamp = to_iso(now)
        if not already_voted:
            self._insert("election_participants", {**participant_key, "created_at": stamp})
        candidate["vote_count"] = int(candidate["vote_count"]) + 1
        election["total_votes"] = int(election["total_votes"]) + 1
        election["updated_at"] = stamp
        self._insert(
            "votes",
            {
                "election_id": p_election_id,
                "voter_id": p_voter_id,
                "candidate_id": p_candidate_id,
                "created_at": stamp,
            },
        )
        return _result(True, "ok", total_votes=election["total_votes"])

    def _cast_ballot_vote(self, p_voter_id: str, p_candidate_id: str) -> list[dict[str, Any]]:
        status = window_status(self._find("voting_window", {"id": 1}))
        if not status["can_vote"]:
            return _result(False, "voting_closed")

        voter = self._find("users", {"id": p_voter_id})
        if not is_eligible(voter):
            return _result(False, "voter_not_eligible")
        if voter["has_voted"]:
            return _result(False, "already_voted")

        candidate = self._find("ballot_candidates", {"id": p_candidate_id})
        if candidate is None:
            return _result(False, "candidate_not_found")

        voter["has_voted"] = True
        candidate["votes"] = int(candidate.get("votes") or 0) + 1
        self._insert("ballot_votes", {"voter_id": p_voter_id, "candidate_id": p_candidate_id})
        return _result(True, "ok", votes=candidate["votes"])

    def _update_election(
        self,
        p_election_id: str,
        p_changes: dict[str, Any],
        p_candidates: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        election = self._find("elections", {"id": p_election_id})
        if election is None:
            return _result(False, "not_found", status=None)
        if election["status"] not in EDITABLE_STATUSES:
            return _result(False, "immutable", status=election["status"])

        changes = copy.deepcopy(p_changes)
        for key in ("requirements", "settings"):
            if key in changes:
                changes[key] = {**(election.get(key) or {}), **changes[key]}
        start = parse_timestamp(changes.get("start_date", election["start_date"]))
        end = parse_timestamp(changes.get("end_date", election["end_date"]))
        if end <= start:
            return _result(False, "invalid_dates", status=election["status"])

        if p_candidates is not None:
            snapshot = self._tables["election_candidates"]
            self._tables["election_candidates"] = [
                row for row in snapshot if row["election_id"] != p_election_id
            ]
            try:
                for candidate in p_candidates:
                    self._insert(
                        "election_candidates", {**candidate, "election_id": p_election_id}
                    )
            except Exception:
                self._tables["election_candidates"] = snapshot
                raise

        election.update(changes)
        election["updated_at"] = to_iso(now_utc())
        return _result(True, "ok", status=election["status"])

    def _delete_election(self, p_election_id: str) -> list[dict[str, Any]]:
        election = self._find("elections", {"id": p_election_id})
        if election is None:
            return _result(False, "not_found")

        has_votes = (
            int(election.get("total_votes") or 0) > 0
            or self._find("election_participants", {"election_id": p_election_id}) is not None
            or self._find("votes", {"election_id": p_election_id}) is not None
        )
        if has_votes:
            return _result(False, "has_votes")

        self.delete("election_candidates", {"election_id": p_election_id})
        self.delete("elections", {"id": p_election_id})
        logger.debug("Deleted election %s from memory store", p_election_id)
        return _result(True, "ok")
