"""
API request and response models for the user auth service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only bound sizes and types. The real input rules (email shape,
password strength, role catalog) live in auth/validation.py so that they apply
to every caller, not just HTTP, and fail with a 400 naming the broken rule.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Role, TokenPair, User, UserStatus

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(max_length=1024)
    name: str = Field(max_length=1024)
    password: str = Field(max_length=1024)
    role: Optional[str] = Field(default=None, max_length=50)
    department_id: Optional[int] = Field(default=None, ge=1)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(max_length=1024)
    password: str = Field(max_length=1024)


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/v1/auth/password."""

    current_password: str = Field(max_length=1024)
    new_password: str = Field(max_length=1024)


class StatusUpdateRequest(BaseModel):
    """Request body for PUT /api/v1/auth/status and PUT /api/v1/admin/users/{id}/status."""

    status: UserStatus


class ResetPasswordRequest(BaseModel):
    """Request body for PUT /api/v1/admin/users/{id}/password."""

    new_password: str = Field(max_length=1024)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/admin/users/{id}. Omitted fields are left unchanged."""

    role: Optional[Role] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """A user as shown to clients. The password hash is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: Role
    status: UserStatus
    department_id: Optional[int] = None
    is_active: bool
    last_active_at: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            status=user.status,
            department_id=user.department_id,
            is_active=user.is_active,
            last_active_at=user.last_active_at,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    refresh_expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
            refresh_expires_in=pair.refresh_expires_in,
        )


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    tokens: TokenPairResponse


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me -- the token's identity plus the stored profile."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: Role
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
