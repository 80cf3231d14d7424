"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data containers). Stores and services do the work;
the only logic here is the role catalog, which owns parsing and privilege
ordering so an invalid role cannot exist after parsing.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from auth.errors import ValidationError


class Role(str, Enum):
    """Closed role catalog, highest privilege first."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        """Return the Role for value, or raise ValidationError."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("role", f"invalid role: {value}") from None

    @classmethod
    def default(cls) -> Role:
        return cls.EMPLOYEE

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: Role) -> bool:
        """True if this role is as privileged as `other` or more."""
        return self.rank >= other.rank


_ROLE_RANK: dict[Role, int] = {
    Role.SUPER_ADMIN: 4,
    Role.ADMIN: 3,
    Role.MANAGER: 2,
    Role.EMPLOYEE: 1,
}


class UserStatus(str, Enum):
    ONLINE = "online"
    BUSY = "busy"
    AWAY = "away"
    OFFLINE = "offline"

    @classmethod
    def parse(cls, value: str | UserStatus) -> UserStatus:
        if isinstance(value, UserStatus):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("status", f"invalid status: {value}") from None


@dataclass
class User:
    """A registered identity.

    email is stored lowercased and trimmed; the store enforces uniqueness.
    hashed_password is a bcrypt hash and must never leave the service --
    api/ response models omit it.
    """

    email: str
    name: str
    hashed_password: str
    role: Role = Role.EMPLOYEE
    id: int | None = None
    status: UserStatus = UserStatus.OFFLINE
    department_id: int | None = None
    is_active: bool = True
    last_active_at: str | None = None  # ISO 8601 UTC
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class RegistrationRequest:
    """Raw registration input, before normalization and validation."""

    email: str
    name: str
    password: str = field(repr=False)
    role: str | None = None
    department_id: int | None = None


@dataclass(frozen=True)
class Claims:
    """Verified contents of a bearer token."""

    user_id: int
    email: str
    role: Role
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    issuer: str
    subject: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_in: int
    refresh_expires_in: int
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as handed to route handlers by the access guard."""

    user_id: int
    email: str
    role: Role


@dataclass(frozen=True)
class LoginResult:
    user: User
    tokens: TokenPair
