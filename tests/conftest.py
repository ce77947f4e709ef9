"""Pytest fixtures for backend tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from datetime import timedelta
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi import Header
from fastapi.testclient import TestClient


def _set_default_env() -> None:
    os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
    os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
    os.environ.setdefault("STORAGE_BACKEND", "memory")


# Settings are read at import time, so the environment must exist before any
# test module imports the package.
_set_default_env()

from ballotbox.services.election_service import ElectionService  # noqa: E402
from ballotbox.services.identity_service import IdentityService  # noqa: E402
from ballotbox.services.memory_store import MemoryDatabase  # noqa: E402
from ballotbox.utils.time import now_utc  # noqa: E402


@pytest.fixture
def db() -> MemoryDatabase:
    """Fresh in-memory store per test."""
    return MemoryDatabase()


@pytest.fixture
def make_user(db: MemoryDatabase) -> Callable[..., dict[str, Any]]:
    """Factory for voter and admin records."""
    counter = {"n": 0}

    def _make(role: str = "voter", **overrides: Any) -> dict[str, Any]:
        counter["n"] += 1
        voter = IdentityService(db).create_voter(
            email=f"{role}{counter['n']}@example.com",
            name=f"{role.title()} {counter['n']}",
            role=role,
        )
        if overrides:
            voter = db.update("users", {"id": voter["id"]}, overrides)[0]
        return voter

    return _make


@pytest.fixture
def admin(make_user: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    """An admin account."""
    return make_user("admin")


def _definition(**overrides: Any) -> dict[str, Any]:
    now = now_utc()
    definition: dict[str, Any] = {
        "title": "Student Council 2026",
        "description": "Annual student council election",
        "type": "local",
        "start_date": now - timedelta(hours=1),
        "end_date": now + timedelta(hours=1),
        "candidates": [
            {"name": "Alice", "party": "Blue"},
            {"name": "Bob", "party": "Green"},
        ],
    }
    definition.update(overrides)
    return definition


@pytest.fixture
def make_election(db: MemoryDatabase, admin: dict[str, Any]) -> Callable[..., dict[str, Any]]:
    """Factory that creates an election and walks it to ``status``."""

    def _make(status: str = "active", **overrides: Any) -> dict[str, Any]:
        service = ElectionService(db)
        election = service.create(str(admin["id"]), _definition(**overrides))
        steps = {"draft": [], "upcoming": ["publish"], "active": ["publish", "start"]}
        for step in steps[status]:
            election = getattr(service, step)(election["id"])
        return election

    return _make


@pytest.fixture
def client(db: MemoryDatabase) -> Iterator[TestClient]:
    """FastAPI test client backed by the memory store.

    ``Authorization: Bearer <user id>`` authenticates as that user.
    """
    from ballotbox.dependencies import get_authenticated_user, get_db, get_optional_user
    from ballotbox.main import app
    from ballotbox.utils.errors import UnauthorizedError

    def _fake_user(authorization: str = Header(None)) -> Any:
        if not authorization or not authorization.startswith("Bearer "):
            raise UnauthorizedError("Missing authorization header")
        return SimpleNamespace(id=authorization.split(" ", 1)[1])

    def _fake_optional_user(authorization: str = Header(None)) -> Any:
        if not authorization or not authorization.startswith("Bearer "):
            return None
        return SimpleNamespace(id=authorization.split(" ", 1)[1])

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_authenticated_user] = _fake_user
    app.dependency_overrides[get_optional_user] = _fake_optional_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def election_definition() -> Callable[..., dict[str, Any]]:
    """Factory for a valid definition whose voting window is open right now."""
    return _definition


@pytest.fixture
def auth_header() -> Callable[[dict[str, Any]], dict[str, str]]:
    """Build the Authorization header for a test user."""

    def _header(user: dict[str, Any]) -> dict[str, str]:
        return {"Authorization": f"Bearer {user['id']}"}

    return _header
