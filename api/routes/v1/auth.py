"""
api/routes/v1/auth.py -- Registration, login and self-service account endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account; 201 (public)
  POST /api/v1/auth/login      -- password login; returns user + token pair (public)
  POST /api/v1/auth/logout     -- mark caller offline (requires auth)
  GET  /api/v1/auth/me         -- caller identity and profile (requires auth)
  PUT  /api/v1/auth/password   -- change own password (requires auth)
  PUT  /api/v1/auth/status     -- set own presence status (requires auth)

Security:
  [C1] Authenticator.login() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses (they carry tokens).

Handlers are plain `def`: bcrypt is CPU-bound and blocking, so FastAPI runs
them in its thread pool instead of on the event loop.

Errors raised by the Authenticator (auth.errors.*) are turned into HTTP
responses by the exception handlers in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    StatusUpdateRequest,
    TokenPairResponse,
    UserResponse,
)
from auth.dependencies import get_current_principal
from auth.models import Principal, RegistrationRequest
from auth.service import Authenticator

# Auth policy:
# - POST /api/v1/auth/register:  public -- account creation
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:    requires auth (get_current_principal)
# - GET  /api/v1/auth/me:        requires auth (get_current_principal)
# - PUT  /api/v1/auth/password:  requires auth (get_current_principal)
# - PUT  /api/v1/auth/status:    requires auth (get_current_principal)
router = APIRouter()


def _authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account. The response never includes the password hash."""
    user = _authenticator(request).register(
        RegistrationRequest(
            email=body.email,
            name=body.name,
            password=body.password,
            role=body.role,
            department_id=body.department_id,
        )
    )
    return UserResponse.from_user(user)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return the user and a token pair.

    Unknown email and wrong password produce the same 401 body
    ("invalid_credentials") so the endpoint cannot be used to discover
    registered emails. A deactivated account gets its own code.
    """
    result = _authenticator(request).login(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            user=UserResponse.from_user(result.user),
            tokens=TokenPairResponse.from_pair(result.tokens),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, principal: Principal = Depends(get_current_principal)) -> MessageResponse:
    """Mark the caller offline. The token itself stays valid until it expires."""
    _authenticator(request).logout(principal.user_id)
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return the identity carried by the token together with the stored profile."""
    user = _authenticator(request).get_user(principal.user_id)
    return MeResponse(
        user_id=principal.user_id,
        email=principal.email,
        role=principal.role,
        user=UserResponse.from_user(user),
    )


@router.put("/auth/password", status_code=204)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Change the caller's password. The current password must be supplied."""
    _authenticator(request).change_password(principal.user_id, body.current_password, body.new_password)
    return Response(status_code=204)


@router.put("/auth/status", response_model=UserResponse)
def set_status(
    request: Request,
    body: StatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    """Set the caller's presence status (online, busy, away, offline)."""
    return UserResponse.from_user(_authenticator(request).set_status(principal.user_id, body.status))
