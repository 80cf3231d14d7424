"""
auth/dependencies.py -- Access guard: bearer-token authentication and role gating.

Each protected request walks one path:

  Unauthenticated -> TokenExtracted -> TokenValidated -> RoleChecked -> Admitted

and any step may exit early with an exception:

  1. no Authorization header                 -> AuthError(missing_authorization)
  2. header is not "Bearer <token>"          -> AuthError(malformed_header)
  3. token fails validate_token()            -> AuthError(invalid_or_expired_token)
  4. role not in the route's allow-set       -> AuthorizationError(insufficient_permissions)

authenticate_header() and authorize() are plain functions holding the logic.
get_current_principal() and require_roles() wrap them as FastAPI Depends()
helpers. FastAPI resolves dependencies before the route body runs, so a
rejected request never reaches handler code. The resulting Principal is passed
to the handler as an ordinary argument -- nothing is stashed on request.state.

Validation is stateless: no store lookup, no revocation list. A token is good
until it expires.

Layer rule: auth/dependencies.py may import from fastapi (for Depends/Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from fastapi import Request

from auth.errors import AuthError, AuthorizationError
from auth.models import Principal, Role
from auth.tokens import TokenConfig, validate_token


def authenticate_header(authorization: str | None, config: TokenConfig) -> Principal:
    """Turn an Authorization header value into a Principal, or raise AuthError."""
    if not authorization:
        raise AuthError("Authorization header is required.", code="missing_authorization")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError("Authorization header must be 'Bearer <token>'.", code="malformed_header")

    claims = validate_token(parts[1], config)
    return Principal(user_id=claims.user_id, email=claims.email, role=claims.role)


def authorize(principal: Principal, allowed: Iterable[Role] | None) -> Principal:
    """Admit the principal if its role is in `allowed`. An empty or None allow-set admits any role."""
    allowed = frozenset(allowed or ())
    if allowed and principal.role not in allowed:
        raise AuthorizationError("Insufficient permissions.")
    return principal


def get_current_principal(request: Request) -> Principal:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    config: TokenConfig = request.app.state.token_config
    return authenticate_header(request.headers.get("Authorization"), config)


def require_roles(*roles: Role) -> Callable[[Request], Principal]:
    """Build a dependency that requires a valid token AND one of `roles`.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(principal: Principal = Depends(require_roles(Role.ADMIN, Role.SUPER_ADMIN))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> Principal:
        return authorize(get_current_principal(request), allowed)

    return dependency


require_admin = require_roles(Role.ADMIN, Role.SUPER_ADMIN)
