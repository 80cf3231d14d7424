"""
auth/service.py -- Registration, login and account operations.

Authenticator orchestrates the pieces: validation rules, the bcrypt hasher,
the user store and the token codec. It returns domain objects and raises
auth.errors exceptions; it knows nothing about HTTP.

Security:
  [C1] login() always runs bcrypt, whether or not the email exists. Unknown
       emails are checked against a dummy hash so response time does not
       reveal which emails are registered. Unknown email and wrong password
       raise the identical AuthError.

  Deactivated accounts get a distinct "account_deactivated" error once the
  email resolves. This leaks that the account exists and is disabled; it is
  the established behavior of the service and callers rely on it.

  The post-login status update is best-effort. A store failure there is
  logged at WARNING and the login still succeeds -- the credentials were
  already verified and nothing about the tokens depends on the write.

Layer rule: no imports from api/. core/ is not needed here; configuration
arrives through the constructor.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import AuthError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from auth.models import LoginResult, Principal, RegistrationRequest, Role, User, UserStatus
from auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from auth.tokens import TokenConfig, issue_token_pair
from auth.validation import normalize_email, validate_password, validate_registration

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("userauth.auth")

_INVALID_CREDENTIALS = "invalid email or password"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Authenticator:
    """Entry point for register/login and the account operations built on them.

    Usage:
        auth = Authenticator(store, TokenConfig.from_settings(get_settings()))
        user = auth.register(RegistrationRequest(email="a@b.com", name="A", password="secret1"))
        result = auth.login("a@b.com", "secret1")
    """

    def __init__(self, store: UserStore, token_config: TokenConfig, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        self.store = store
        self.token_config = token_config
        self.bcrypt_rounds = bcrypt_rounds
        # Timing equalization dummy hash [C1]. Same cost factor as real hashes,
        # computed once so the first failed login is not measurably faster.
        self._dummy_hash = hash_password("userauth_timing_dummy", rounds=bcrypt_rounds)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, request: RegistrationRequest) -> User:
        """Create an account and return it.

        Raises ValidationError for rule violations or an unknown department,
        ConflictError if the email is already registered.
        """
        email, name, role = validate_registration(request)

        if self.store.get_by_email(email) is not None:
            raise ConflictError("duplicate email")

        if request.department_id is not None and not self.store.department_exists(request.department_id):
            raise ValidationError("department_id", "invalid department")

        user = User(
            email=email,
            name=name,
            hashed_password=hash_password(request.password, rounds=self.bcrypt_rounds),
            role=role,
            department_id=request.department_id,
        )
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            # Lost the race against a concurrent registration for the same email.
            raise ConflictError("duplicate email") from exc

        created = self.store.get_by_id(user_id)
        logger.info("Registered user %s (role=%s)", user_id, role.value)
        return created if created is not None else user

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials and mint a token pair.

        Raises ValidationError for empty input, AuthError("invalid_credentials")
        for an unknown email or wrong password, AuthError("account_deactivated")
        for a disabled account.
        """
        if not email or not email.strip():
            raise ValidationError("email", "email is required")
        if not password:
            raise ValidationError("password", "password is required")

        user = self.store.get_by_email(normalize_email(email))
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, self._dummy_hash)
            logger.info("Login failed: invalid_credentials")
            raise AuthError(_INVALID_CREDENTIALS, code="invalid_credentials")

        if not user.is_active:
            verify_password(password, self._dummy_hash)
            logger.info("Login failed for user %s: account_deactivated", user.id)
            raise AuthError("account is deactivated", code="account_deactivated")

        if not verify_password(password, user.hashed_password):
            logger.info("Login failed: invalid_credentials")
            raise AuthError(_INVALID_CREDENTIALS, code="invalid_credentials")

        user.status = UserStatus.ONLINE
        user.last_active_at = _now_iso()
        self._record_presence(user)

        tokens = issue_token_pair(user.id, user.email, user.role, self.token_config)
        logger.info("User %s logged in", user.id)
        return LoginResult(user=user, tokens=tokens)

    def logout(self, user_id: int) -> None:
        """Mark the user offline. Issued tokens stay valid until they expire."""
        user = self.store.get_by_id(user_id)
        if user is None:
            return
        user.status = UserStatus.OFFLINE
        user.last_active_at = _now_iso()
        self._record_presence(user)

    def _record_presence(self, user: User) -> None:
        try:
            self.store.update_user(user.id, status=user.status, last_active_at=user.last_active_at)
        except SQLAlchemyError:
            logger.warning("Presence update failed for user %s; continuing", user.id, exc_info=True)

    # ------------------------------------------------------------------
    # Account operations
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """Replace the caller's password after re-verifying the current one."""
        user = self.get_user(user_id)
        if not user.is_active:
            raise AuthError("account is deactivated", code="account_deactivated")
        if not current_password or not verify_password(current_password, user.hashed_password):
            raise AuthError("current password is incorrect", code="invalid_credentials")
        validate_password(new_password)
        self.store.update_user(user_id, hashed_password=hash_password(new_password, rounds=self.bcrypt_rounds))
        logger.info("Password changed for user %s", user_id)

    def set_status(self, user_id: int, status: str | UserStatus) -> User:
        """Set the caller's own presence status. Deactivated accounts may not."""
        new_status = UserStatus.parse(status)
        user = self.get_user(user_id)
        if not user.is_active:
            raise AuthError("account is deactivated", code="account_deactivated")
        return self._write_status(user, new_status)

    def _write_status(self, user: User, status: UserStatus) -> User:
        fields: dict = {"status": status}
        if status is UserStatus.ONLINE:
            fields["last_active_at"] = _now_iso()
        self.store.update_user(user.id, **fields)
        return self.get_user(user.id)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def reset_password(self, actor: Principal, user_id: int, new_password: str) -> None:
        """Set another account's password without knowing the current one.

        Only a super_admin may reset a super_admin's password.
        """
        validate_password(new_password)
        target = self.get_user(user_id)
        if target.role is Role.SUPER_ADMIN and actor.role is not Role.SUPER_ADMIN:
            raise AuthorizationError("only a super_admin can reset a super_admin's password")
        self.store.update_user(user_id, hashed_password=hash_password(new_password, rounds=self.bcrypt_rounds))
        logger.info("Password for user %s reset by %s", user_id, actor.user_id)

    def set_user_status(self, actor: Principal, user_id: int, status: str | UserStatus) -> User:
        """Set any account's presence status."""
        new_status = UserStatus.parse(status)
        updated = self._write_status(self.get_user(user_id), new_status)
        logger.info("Status of user %s set to %s by %s", user_id, new_status.value, actor.user_id)
        return updated

    def update_user(
        self,
        actor: Principal,
        user_id: int,
        role: str | Role | None = None,
        is_active: bool | None = None,
    ) -> User:
        """Change another account's role or active flag. Admin operation.

        Rules:
          - nobody deactivates their own account;
          - only a super_admin grants or revokes super_admin;
          - the last active super_admin cannot be deactivated or demoted.
        Deactivation also sets status offline.
        """
        target = self.get_user(user_id)
        updates: dict = {}

        if role is not None:
            new_role = Role.parse(role)
            touches_super = Role.SUPER_ADMIN in (new_role, target.role)
            if touches_super and actor.role is not Role.SUPER_ADMIN:
                raise AuthorizationError("only a super_admin can grant or revoke super_admin")
            if target.role is Role.SUPER_ADMIN and new_role is not Role.SUPER_ADMIN:
                self._ensure_not_last_super_admin(target)
            updates["role"] = new_role

        if is_active is not None:
            if not is_active and target.id == actor.user_id:
                raise ValidationError("is_active", "you cannot deactivate your own account")
            if not is_active and target.role is Role.SUPER_ADMIN:
                if actor.role is not Role.SUPER_ADMIN:
                    raise AuthorizationError("only a super_admin can deactivate a super_admin")
                self._ensure_not_last_super_admin(target)
            updates["is_active"] = is_active
            if not is_active:
                updates["status"] = UserStatus.OFFLINE

        if not updates:
            raise ValidationError("body", "no fields to update")

        self.store.update_user(user_id, **updates)
        logger.info("User %s updated by %s: %s", user_id, actor.user_id, sorted(updates))
        return self.get_user(user_id)

    def _ensure_not_last_super_admin(self, target: User) -> None:
        if target.is_active and self.store.count_active_super_admins() <= 1:
            raise ValidationError("role", "cannot remove the last active super_admin")
