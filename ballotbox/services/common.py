"""Shared data access helpers."""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import httpx
from postgrest import APIError

from ballotbox.config import settings
from ballotbox.utils.errors import ConflictError, NotFoundError, StorageError
from supabase import Client

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
# Raised when an id filter is not a valid uuid; no row can match it.
INVALID_TEXT_REPRESENTATION = "22P02"


class Database(Protocol):
    """Table access surface shared by the Supabase and memory backends."""

    def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
        not_found_label: str | None = None,
    ) -> dict[str, Any]: ...

    def select_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def count(self, table: str, filters: dict[str, Any] | None = None) -> int: ...

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]: ...

    def insert_many(
        self, table: str, payloads: list[dict[str, Any]]
    ) -> list[dict[str, Any]]: ...

    def update(
        self, table: str, filters: dict[str, Any], payload: dict[str, Any]
    ) -> list[dict[str, Any]]: ...

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]: ...

    def rpc(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]: ...


def duplicate_key_error(table: str) -> ConflictError:
    """Return the error both backends raise on a unique-key violation."""
    return ConflictError(f"Duplicate {table} record", code="DUPLICATE_KEY")


class SupabaseService:
    """Thin helper wrapper around a Supabase client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def execute(self, query, default: Any = None, table: str = "record") -> Any:
        """Execute a Supabase query and normalize API errors."""
        started = time.perf_counter()
        try:
            response = query.execute()
        except APIError as exc:
            code = str(getattr(exc, "code", ""))
            if code == UNIQUE_VIOLATION:
                raise duplicate_key_error(table) from exc
            if code == INVALID_TEXT_REPRESENTATION:
                logger.info("Malformed identifier in %s request; no rows match", table)
                return default
            logger.error(
                "Supabase request failed on %s: %s",
                table,
                getattr(exc, "message", exc),
            )
            raise StorageError() from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase transport failure on %s: %s", table, exc)
            raise StorageError() from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        threshold_ms = settings.slow_query_log_threshold_ms
        if threshold_ms > 0 and elapsed_ms >= threshold_ms:
            logger.warning("Slow Supabase query on %s %.1fms", table, elapsed_ms)
        data = response.data
        return default if data is None and default is not None else data

    def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
        not_found_label: str | None = None,
    ) -> dict[str, Any]:
        """Select a single row and raise NotFoundError when missing."""
        query = self.client.table(table).select(columns)
        for key, value in filters.items():
            query = query.eq(key, value)
        rows = self.execute(query.limit(1), default=[], table=table)
        if not rows:
            label = not_found_label or table
            raise NotFoundError(label)
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
        """Select many rows from a table with optional filters and paging."""
        query = self.client.table(table).select(columns)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return self.execute(query, default=[], table=table)

    def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows in a table with optional equality filters."""
        # Head-only count works for tables without an `id` column
        # (for example, the composite-key `election_participants`).
        query = self.client.table(table).select("*", count="exact", head=True)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        try:
            response = query.execute()
            return response.count or 0
        except APIError as exc:
            if str(getattr(exc, "code", "")) == INVALID_TEXT_REPRESENTATION:
                return 0
            logger.error("Supabase count failed on %s: %s", table, getattr(exc, "message", exc))
            raise StorageError() from exc

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return the created object."""
        rows = self.execute(self.client.table(table).insert(payload), default=[], table=table)
        if not rows:
            logger.error("Insert into %s returned no rows", table)
            raise StorageError()
        return rows[0]

    def insert_many(self, table: str, payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert many rows and return inserted rows."""
        if not payloads:
            return []
        return self.execute(self.client.table(table).insert(payloads), default=[], table=table)

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows by equality filters and return the updated rows.

        The filters are applied in the same UPDATE statement, so filtering on
        the current value of a column makes the write a compare-and-set.
        """
        query = self.client.table(table).update(payload)
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[], table=table)

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Delete rows by equality filters and return removed rows."""
        query = self.client.table(table).delete()
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[], table=table)

    def rpc(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Call a Postgres function; each call runs in its own transaction."""
        return self.execute(self.client.rpc(function, params), default=[], table=function)
