"""Unit tests for auth/tokens.py -- JWT issue and validation.

Covers:
- issued tokens validate to claims equal to the inputs
- the [nbf, exp) window is enforced at both edges
- foreign secrets, foreign issuers, tampered payloads and signatures fail
- algorithm pinning: "none" and other algorithms fail closed
- token pairs share a snapshot and differ only in lifetime
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import AuthError
from auth.models import Role
from auth.tokens import TokenConfig, issue_token, issue_token_pair, validate_token

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _assert_rejected(token: str, config: TokenConfig, now: datetime | None = NOW) -> None:
    with pytest.raises(AuthError) as exc_info:
        validate_token(token, config, now=now)
    assert exc_info.value.code == "invalid_or_expired_token"


class TestIssueAndValidate:
    def test_claims_match_inputs(self, token_config: TokenConfig) -> None:
        token = issue_token(42, "a@b.com", Role.MANAGER, timedelta(minutes=15), token_config, now=NOW)
        claims = validate_token(token, token_config, now=NOW)
        assert claims.user_id == 42
        assert claims.email == "a@b.com"
        assert claims.role is Role.MANAGER
        assert claims.issuer == token_config.issuer
        assert claims.subject == "42"
        assert claims.issued_at == NOW
        assert claims.not_before == NOW
        assert claims.expires_at == NOW + timedelta(minutes=15)

    def test_validates_with_real_clock(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=5), token_config)
        assert validate_token(token, token_config).user_id == 1

    def test_token_is_three_part_hs256(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=5), token_config, now=NOW)
        assert token.count(".") == 2
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_deterministic_for_identical_inputs(self, token_config: TokenConfig) -> None:
        a = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=5), token_config, now=NOW)
        b = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=5), token_config, now=NOW)
        assert a == b


class TestValidityWindow:
    def test_valid_just_before_expiry(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=NOW)
        validate_token(token, token_config, now=NOW + timedelta(minutes=15) - timedelta(seconds=1))

    def test_rejected_exactly_at_expiry(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=NOW)
        _assert_rejected(token, token_config, now=NOW + timedelta(minutes=15))

    def test_rejected_after_expiry(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=NOW)
        _assert_rejected(token, token_config, now=NOW + timedelta(days=1))

    def test_expired_token_fails_against_real_clock(self, token_config: TokenConfig) -> None:
        """Correct signature does not save an expired token."""
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=past)
        _assert_rejected(token, token_config, now=None)

    def test_rejected_before_not_before(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=NOW)
        _assert_rejected(token, token_config, now=NOW - timedelta(seconds=1))


class TestTampering:
    def test_different_secret_rejected(self, token_config: TokenConfig) -> None:
        other = TokenConfig(secret="another-secret-key-of-at-least-32-characters", issuer=token_config.issuer)
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), other, now=NOW)
        _assert_rejected(token, token_config)

    def test_different_issuer_rejected(self, token_config: TokenConfig) -> None:
        other = TokenConfig(secret=token_config.secret, issuer="someone-else")
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), other, now=NOW)
        _assert_rejected(token, token_config)

    def test_modified_payload_rejected(self, token_config: TokenConfig) -> None:
        """Escalating the role in the payload breaks the signature."""
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=NOW)
        header, _payload, signature = token.split(".")
        claims = jwt.get_unverified_claims(token)
        claims["role"] = "super_admin"
        _assert_rejected(f"{header}.{_b64(claims)}.{signature}", token_config)

    def test_modified_signature_rejected(self, token_config: TokenConfig) -> None:
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), token_config, now=NOW)
        header, payload, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        _assert_rejected(f"{header}.{payload}.{flipped}", token_config)

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b", "a.b.c", "....", "Bearer x.y.z"])
    def test_malformed_token_rejected(self, token_config: TokenConfig, garbage: str) -> None:
        _assert_rejected(garbage, token_config)


class TestAlgorithmPinning:
    def test_alg_none_rejected(self, token_config: TokenConfig) -> None:
        claims = {
            "sub": "1",
            "user_id": 1,
            "email": "a@b.com",
            "role": "super_admin",
            "iat": int(NOW.timestamp()),
            "nbf": int(NOW.timestamp()),
            "exp": int(NOW.timestamp()) + 900,
            "iss": token_config.issuer,
        }
        unsigned = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(claims)}."
        _assert_rejected(unsigned, token_config)

    def test_other_hmac_algorithm_rejected(self, token_config: TokenConfig) -> None:
        """Even a correctly signed HS512 token fails when HS256 is configured."""
        hs512 = TokenConfig(secret=token_config.secret, issuer=token_config.issuer, algorithm="HS512")
        token = issue_token(1, "a@b.com", Role.EMPLOYEE, timedelta(minutes=15), hs512, now=NOW)
        _assert_rejected(token, token_config)


class TestClaimShape:
    def _sign(self, config: TokenConfig, **overrides) -> str:
        claims = {
            "sub": "7",
            "user_id": 7,
            "email": "a@b.com",
            "role": "employee",
            "iat": int(NOW.timestamp()),
            "nbf": int(NOW.timestamp()),
            "exp": int(NOW.timestamp()) + 900,
            "iss": config.issuer,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, config.secret, algorithm="HS256")

    def test_well_formed_manual_token_accepted(self, token_config: TokenConfig) -> None:
        assert validate_token(self._sign(token_config), token_config, now=NOW).user_id == 7

    def test_unknown_role_rejected(self, token_config: TokenConfig) -> None:
        _assert_rejected(self._sign(token_config, role="root"), token_config)

    def test_missing_exp_rejected(self, token_config: TokenConfig) -> None:
        _assert_rejected(self._sign(token_config, exp=None), token_config)

    def test_missing_email_rejected(self, token_config: TokenConfig) -> None:
        _assert_rejected(self._sign(token_config, email=None), token_config)

    def test_subject_mismatch_rejected(self, token_config: TokenConfig) -> None:
        _assert_rejected(self._sign(token_config, sub="8"), token_config)

    def test_string_user_id_rejected(self, token_config: TokenConfig) -> None:
        _assert_rejected(self._sign(token_config, user_id="7"), token_config)


class TestTokenPair:
    def test_pair_shares_claims_and_differs_in_expiry(self, token_config: TokenConfig) -> None:
        pair = issue_token_pair(5, "p@q.com", Role.ADMIN, token_config, now=NOW)
        assert pair.access_token and pair.refresh_token
        assert pair.access_token != pair.refresh_token
        access = validate_token(pair.access_token, token_config, now=NOW)
        refresh = validate_token(pair.refresh_token, token_config, now=NOW)
        assert (access.user_id, access.email, access.role) == (refresh.user_id, refresh.email, refresh.role)
        assert access.expires_at == NOW + timedelta(minutes=15)
        assert refresh.expires_at == NOW + timedelta(days=7)
        assert pair.expires_in == 900
        assert pair.refresh_expires_in == 7 * 24 * 3600
        assert pair.token_type == "bearer"

    def test_access_expires_while_refresh_survives(self, token_config: TokenConfig) -> None:
        pair = issue_token_pair(5, "p@q.com", Role.ADMIN, token_config, now=NOW)
        later = NOW + timedelta(hours=1)
        _assert_rejected(pair.access_token, token_config, now=later)
        assert validate_token(pair.refresh_token, token_config, now=later).user_id == 5


def test_secret_not_in_repr(token_config: TokenConfig) -> None:
    assert token_config.secret not in repr(token_config)
