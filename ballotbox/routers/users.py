"""Admin user management endpoints."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Response

from ballotbox.dependencies import get_db, require_admin
from ballotbox.schemas.user import VoterEnvelope, VoterListResponse, VoterUpdate
from ballotbox.services.common import Database
from ballotbox.services.identity_service import IdentityService
from ballotbox.utils.errors import ForbiddenError

router = APIRouter()


@router.get("", response_model=VoterListResponse)
def list_users(
    role: Literal["voter", "admin"] | None = None,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """List voters and admins, newest first."""
    return {"users": IdentityService(db).list_voters(role=role)}


@router.get("/{user_id}", response_model=VoterEnvelope)
def get_user(
    user_id: str,
    _: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Return one user record."""
    return {"user": IdentityService(db).get_voter(user_id)}


@router.put("/{user_id}", response_model=VoterEnvelope)
def update_user(
    user_id: str,
    payload: VoterUpdate,
    admin: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> dict:
    """Change a user's name, role, or active and verified flags."""
    if str(admin["id"]) == user_id and (payload.role == "voter" or payload.is_active is False):
        raise ForbiddenError("Admins cannot demote or deactivate themselves")
    user = IdentityService(db).update_voter(user_id, payload.model_dump(exclude_none=True))
    return {"user": user, "message": "User updated"}


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: str,
    admin: dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Response:
    """Delete a user that has not voted."""
    if str(admin["id"]) == user_id:
        raise ForbiddenError("Admins cannot delete themselves")
    IdentityService(db).delete_voter(user_id)
    return Response(status_code=204)
