"""
auth/errors.py -- Typed failure taxonomy for the auth core.

Every failure the core can report is one of these classes. The core raises
them; api/main.py maps each class to an HTTP status and the shared error
envelope. Nothing here knows about HTTP.

  ValidationError     -- malformed input; the caller can fix the request (400)
  ConflictError       -- duplicate resource, e.g. an email already registered (409)
  NotFoundError       -- referenced user does not exist (404)
  AuthError           -- bad credentials, bad/expired token, deactivated account (401)
  AuthorizationError  -- valid identity, role not allowed (403)
  HashingError        -- bcrypt failure; surfaced as a generic internal error (500)

`code` is a stable machine-readable string; `message` is safe to show clients.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class. Carries a stable code and a client-safe message."""

    code: str = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(AuthServiceError):
    """Input rejected by a validation rule. `field` names the offending input."""

    code = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class ConflictError(AuthServiceError):
    code = "conflict"


class NotFoundError(AuthServiceError):
    code = "not_found"


class AuthError(AuthServiceError):
    """Authentication failed.

    Codes used by the core:
      invalid_credentials       -- unknown email or wrong password (identical on purpose)
      account_deactivated       -- email resolved but the account is disabled
      missing_authorization     -- no Authorization header
      malformed_header          -- header is not "Bearer <token>"
      invalid_or_expired_token  -- token failed decoding, signature, issuer or time checks
    """

    code = "unauthorized"


class AuthorizationError(AuthServiceError):
    code = "insufficient_permissions"


class HashingError(AuthServiceError):
    code = "internal_error"
