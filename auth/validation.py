"""
auth/validation.py -- Registration input rules.

Each validator raises ValidationError for the first rule that fails and
returns the normalized value otherwise. validate_registration() runs them in
a fixed order (email, password, name, role) and stops at the first failure;
errors are never aggregated.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import re

from auth.errors import ValidationError
from auth.models import RegistrationRequest, Role
from auth.passwords import MAX_PASSWORD_BYTES

EMAIL_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100
NAME_MAX_LENGTH = 100

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_LETTER_RE = re.compile(r"[a-zA-Z]")
_DIGIT_OR_SYMBOL_RE = re.compile(r"[0-9!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

# Case-insensitive exact matches.
COMMON_PASSWORDS = frozenset(
    {
        "password",
        "123456",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
        "dragon",
    }
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: str) -> str:
    """Return the trimmed email or raise ValidationError."""
    email = (email or "").strip()
    if not email:
        raise ValidationError("email", "email is required")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError("email", f"email too long (max {EMAIL_MAX_LENGTH} characters)")
    if not _EMAIL_RE.match(email) or email.count("@") != 1:
        raise ValidationError("email", "invalid email format")
    local, domain = email.split("@")
    if not local or not domain:
        raise ValidationError("email", "invalid email format")
    return email


def validate_password(password: str) -> str:
    if not password:
        raise ValidationError("password", "password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError("password", f"password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError("password", f"password too long (max {PASSWORD_MAX_LENGTH} characters)")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError("password", f"password too long (max {MAX_PASSWORD_BYTES} bytes)")
    if not _LETTER_RE.search(password):
        raise ValidationError("password", "password must contain at least one letter")
    if len(password) >= 8 and not _DIGIT_OR_SYMBOL_RE.search(password):
        raise ValidationError("password", "password must contain at least one number or symbol")
    if password.lower() in COMMON_PASSWORDS:
        raise ValidationError("password", "password is too common, please choose a stronger password")
    return password


def validate_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError("name", f"name too long (max {NAME_MAX_LENGTH} characters)")
    return name


def parse_role(role: str | Role | None) -> Role:
    """Empty or missing role means the lowest-privilege role."""
    if role is None or (isinstance(role, str) and not role.strip()):
        return Role.default()
    return Role.parse(role)


def validate_registration(request: RegistrationRequest) -> tuple[str, str, Role]:
    """Validate a registration and return (normalized_email, trimmed_name, role).

    The password is checked but not returned; callers hash request.password.
    """
    email = normalize_email(validate_email(request.email))
    validate_password(request.password)
    name = validate_name(request.name)
    role = parse_role(request.role)
    return email, name, role
