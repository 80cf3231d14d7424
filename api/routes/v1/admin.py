"""
api/routes/v1/admin.py -- User administration endpoints (admin and super_admin only).

Routes:
  GET   /api/v1/admin/users                 -- list all users
  PATCH /api/v1/admin/users/{id}            -- change role and/or is_active
  PUT   /api/v1/admin/users/{id}/status     -- set presence status
  PUT   /api/v1/admin/users/{id}/password   -- reset password; 204

Every route depends on require_admin, so callers with any other role get a
403 before the handler body runs. Finer rules (self-deactivation, who may
touch super_admin, the last super_admin) live in the Authenticator.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import ResetPasswordRequest, StatusUpdateRequest, UserPatch, UserResponse
from auth.dependencies import require_admin
from auth.models import Principal
from auth.service import Authenticator

router = APIRouter()


def _authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(request: Request, principal: Principal = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts."""
    return [UserResponse.from_user(u) for u in _authenticator(request).store.list_users()]


@router.patch("/admin/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    """Update a user's role or active flag."""
    updated = _authenticator(request).update_user(principal, user_id, role=body.role, is_active=body.is_active)
    return UserResponse.from_user(updated)


@router.put("/admin/users/{user_id}/status", response_model=UserResponse)
def set_user_status(
    request: Request,
    user_id: int,
    body: StatusUpdateRequest,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    updated = _authenticator(request).set_user_status(principal, user_id, body.status)
    return UserResponse.from_user(updated)


@router.put("/admin/users/{user_id}/password", status_code=204)
def reset_password(
    request: Request,
    user_id: int,
    body: ResetPasswordRequest,
    principal: Principal = Depends(require_admin),
) -> Response:
    """Set a new password for a user. The new password must pass the usual rules."""
    _authenticator(request).reset_password(principal, user_id, body.new_password)
    return Response(status_code=204)
