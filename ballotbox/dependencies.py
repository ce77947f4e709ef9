"""FastAPI dependency injection helpers."""

from __future__ import annotations

import threading
import time
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header

from ballotbox.config import settings
from ballotbox.services.common import Database, SupabaseService
from ballotbox.services.identity_service import IdentityService
from ballotbox.services.memory_store import MemoryDatabase
from ballotbox.utils.errors import ForbiddenError, UnauthorizedError
from ballotbox.utils.supabase_client import get_auth_client, get_service_client

_token_cache: dict[str, tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    """Return a cache value when present and not expired."""
    now = time.monotonic()
    with _cache_lock:
        entry = cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return value


def _cache_set(
    cache: dict[Any, tuple[float, Any]],
    key: Any,
    value: Any,
    ttl_seconds: int,
    max_entries: int,
) -> None:
    """Store a bounded cache value with TTL."""
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        bounded_max_entries = max(1, max_entries)
        if len(cache) >= bounded_max_entries:
            oldest_key = next(iter(cache))
            cache.pop(oldest_key, None)
        cache[key] = (time.monotonic() + ttl_seconds, value)


@lru_cache(maxsize=1)
def get_memory_database() -> MemoryDatabase:
    """Return the process-wide memory store."""
    return MemoryDatabase()


def get_db() -> Database:
    """Return the configured data access backend."""
    if settings.uses_memory_storage:
        return get_memory_database()
    return SupabaseService(get_service_client())


def get_authenticated_user(authorization: str = Header(None)) -> Any:
    """Extract and validate a Supabase JWT from the Authorization header.

    Raises:
        UnauthorizedError: 401 if the header is missing, malformed, or
            the token cannot be validated.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing authorization header")

    token = authorization.split(" ", 1)[1]
    cached_user = _cache_get(_token_cache, token)
    if cached_user is not None:
        return cached_user

    supabase = get_auth_client()

    try:
        response = supabase.auth.get_user(token)
        if not response or not response.user:
            raise UnauthorizedError("Invalid token")
        _cache_set(
            _token_cache,
            token,
            response.user,
            settings.auth_token_cache_ttl_seconds,
            settings.auth_token_cache_max_entries,
        )
        return response.user
    except UnauthorizedError:
        raise
    except Exception as exc:
        raise UnauthorizedError("Invalid or expired token") from exc


def get_current_user_id(user: Any) -> str:
    """Extract a stable user id string from the Supabase user object."""
    return str(user.id)


def get_current_voter(
    user: Any = Depends(get_authenticated_user),
    db: Database = Depends(get_db),
) -> dict[str, Any]:
    """Return the caller's voter record; unknown accounts are unauthorized."""
    voter = IdentityService(db).find_voter(get_current_user_id(user))
    if voter is None:
        raise UnauthorizedError("The user belonging to this token no longer exists")
    if not voter.get("is_active"):
        raise ForbiddenError("This account has been deactivated")
    return voter


def require_admin(voter: dict[str, Any] = Depends(get_current_voter)) -> dict[str, Any]:
    """Allow only admins through."""
    if voter.get("role") != "admin":
        raise ForbiddenError("You do not have permission to perform this action")
    return voter


def get_optional_user(authorization: str = Header(None)) -> Any | None:
    """Return the authenticated user, or None for anonymous or invalid tokens."""
    if not authorization:
        return None
    try:
        return get_authenticated_user(authorization)
    except UnauthorizedError:
        return None


def get_optional_voter(
    user: Any | None = Depends(get_optional_user),
    db: Database = Depends(get_db),
) -> dict[str, Any] | None:
    """Return the caller's voter record when a valid token is present."""
    if user is None:
        return None
    return IdentityService(db).find_voter(get_current_user_id(user))
