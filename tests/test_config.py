"""
tests/test_config.py -- Settings policy in core/config.py.

Settings() is built directly with monkeypatched environment variables so the
cached get_settings() singleton used by the app is never disturbed.
"""

from __future__ import annotations

import pytest

from auth.tokens import TokenConfig
from core.config import Settings

GOOD_KEY = "k" * 32


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ("DEBUG", "SECRET_KEY", "BCRYPT_ROUNDS", "ACCESS_TOKEN_EXPIRE_SECONDS", "REFRESH_TOKEN_EXPIRE_SECONDS", "JWT_ISSUER"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_production_requires_secret_key(clean_env) -> None:
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(_env_file=None)


def test_debug_generates_secret_key(clean_env) -> None:
    clean_env.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert len(settings.secret_key) >= 32


def test_short_secret_key_rejected(clean_env) -> None:
    clean_env.setenv("SECRET_KEY", "too-short")
    with pytest.raises(ValueError, match="at least 32"):
        Settings(_env_file=None)


def test_secret_key_hidden_from_repr(clean_env) -> None:
    clean_env.setenv("SECRET_KEY", GOOD_KEY)
    assert GOOD_KEY not in repr(Settings(_env_file=None))


def test_defaults(clean_env) -> None:
    clean_env.setenv("SECRET_KEY", GOOD_KEY)
    settings = Settings(_env_file=None)
    assert settings.jwt_issuer == "user-auth-service"
    assert settings.access_token_expire_seconds == 900
    assert settings.refresh_token_expire_seconds == 7 * 24 * 3600
    assert settings.bcrypt_rounds == 12


@pytest.mark.parametrize("rounds", ["3", "32"])
def test_bcrypt_rounds_bounds(clean_env, rounds: str) -> None:
    clean_env.setenv("SECRET_KEY", GOOD_KEY)
    clean_env.setenv("BCRYPT_ROUNDS", rounds)
    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_non_positive_lifetime_rejected(clean_env) -> None:
    clean_env.setenv("SECRET_KEY", GOOD_KEY)
    clean_env.setenv("ACCESS_TOKEN_EXPIRE_SECONDS", "0")
    with pytest.raises(ValueError, match="positive"):
        Settings(_env_file=None)


def test_token_config_from_settings(clean_env) -> None:
    clean_env.setenv("SECRET_KEY", GOOD_KEY)
    clean_env.setenv("JWT_ISSUER", "issuer-x")
    clean_env.setenv("ACCESS_TOKEN_EXPIRE_SECONDS", "60")
    config = TokenConfig.from_settings(Settings(_env_file=None))
    assert config.secret == GOOD_KEY
    assert config.issuer == "issuer-x"
    assert config.access_ttl.total_seconds() == 60
    assert config.refresh_ttl.total_seconds() == 7 * 24 * 3600
