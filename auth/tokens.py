"""
auth/tokens.py -- JWT issuing and validation.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub, user_id, email, role, iat, nbf, exp and iss. Access and refresh
       tokens share the claim shape and key; only the lifetime differs.

  Algorithm pinning: the token header's "alg" is compared against the
       configured algorithm BEFORE any signature work, and jose.jwt.decode()
       is called with that single algorithm. A token declaring "none", RS256
       or anything else fails closed -- no algorithm-confusion path.

  Time checks: jose's own exp/nbf/iat checks are switched off and the window
       [nbf, exp) is enforced here against an injectable clock. This keeps
       the boundary exact (a token is dead AT exp, not one second after) and
       makes the window testable without sleeping.

  Failure mode: every rejection raises AuthError("invalid_or_expired_token")
       with the same client-facing message. The specific reason goes to the
       debug log only.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import AuthError, ValidationError
from auth.models import Claims, Role, TokenPair

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("userauth.auth.tokens")

_ALGORITHM = "HS256"

_INVALID_TOKEN = "invalid_or_expired_token"


@dataclass(frozen=True)
class TokenConfig:
    """Everything the codec needs. `secret` is kept out of repr so it cannot leak into logs."""

    secret: str = field(repr=False)
    issuer: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    algorithm: str = _ALGORITHM

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            secret=settings.secret_key,
            issuer=settings.jwt_issuer,
            access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


def issue_token(
    user_id: int,
    email: str,
    role: Role,
    duration: timedelta,
    config: TokenConfig,
    now: datetime | None = None,
) -> str:
    """Encode a signed JWT valid from `now` for `duration`.

    Timestamps are whole seconds (JWT NumericDate), so two calls within the
    same second with identical inputs produce identical tokens.
    """
    issued = int((now or _utcnow()).timestamp())
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "email": email,
        "role": Role.parse(role).value,
        "iat": issued,
        "nbf": issued,
        "exp": issued + int(duration.total_seconds()),
        "iss": config.issuer,
    }
    return jwt.encode(payload, config.secret, algorithm=config.algorithm)


def issue_token_pair(
    user_id: int,
    email: str,
    role: Role,
    config: TokenConfig,
    now: datetime | None = None,
) -> TokenPair:
    """Mint an access and a refresh token from the same identity snapshot."""
    now = now or _utcnow()
    return TokenPair(
        access_token=issue_token(user_id, email, role, config.access_ttl, config, now=now),
        refresh_token=issue_token(user_id, email, role, config.refresh_ttl, config, now=now),
        expires_in=int(config.access_ttl.total_seconds()),
        refresh_expires_in=int(config.refresh_ttl.total_seconds()),
    )


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------


def _reject(reason: str) -> AuthError:
    logger.debug("Token rejected: %s", reason)
    return AuthError("Invalid or expired token.", code=_INVALID_TOKEN)


def validate_token(token: str, config: TokenConfig, now: datetime | None = None) -> Claims:
    """Verify a JWT and return its claims.

    Raises AuthError("invalid_or_expired_token") if the token is malformed,
    declares a different algorithm, has a bad signature or issuer, lacks a
    required claim, or `now` falls outside [nbf, exp).
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise _reject("malformed header") from None
    if header.get("alg") != config.algorithm:
        raise _reject(f"unexpected algorithm {header.get('alg')!r}")

    try:
        payload = jwt.decode(
            token,
            config.secret,
            algorithms=[config.algorithm],
            options={"verify_exp": False, "verify_nbf": False, "verify_iat": False, "verify_aud": False},
        )
    except JWTError:
        raise _reject("signature or encoding") from None

    if payload.get("iss") != config.issuer:
        raise _reject("issuer mismatch")

    user_id = payload.get("user_id")
    email = payload.get("email")
    subject = payload.get("sub")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise _reject("user_id claim")
    if not isinstance(email, str) or not email:
        raise _reject("email claim")
    if subject != str(user_id):
        raise _reject("sub claim")
    try:
        role = Role.parse(payload.get("role", ""))
    except ValidationError:
        raise _reject("role claim") from None

    times = {}
    for claim in ("iat", "nbf", "exp"):
        value = payload.get(claim)
        if not isinstance(value, int) or isinstance(value, bool):
            raise _reject(f"{claim} claim")
        times[claim] = value

    current = (now or _utcnow()).timestamp()
    if current < times["nbf"]:
        raise _reject("not yet valid")
    if current >= times["exp"]:
        raise _reject("expired")

    return Claims(
        user_id=user_id,
        email=email,
        role=role,
        issued_at=datetime.fromtimestamp(times["iat"], tz=timezone.utc),
        not_before=datetime.fromtimestamp(times["nbf"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(times["exp"], tz=timezone.utc),
        issuer=payload["iss"],
        subject=subject,
    )
