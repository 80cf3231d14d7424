"""
auth/passwords.py -- bcrypt password hashing and verification.

bcrypt is used directly rather than through passlib: passlib's wrap-bug check
builds a >72-byte password that bcrypt 4.x rejects, and bcrypt 5.x refuses
any input over 72 bytes.

bcrypt only reads the first 72 bytes of its input, so nothing longer is ever
hashed or compared. hash_password() rejects such input with a ValidationError
and verify_password() reports it as a mismatch. Truncating instead would let
two different passwords that share a 72-byte prefix verify against each
other. auth/validation.py enforces the same limit at registration.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

from auth.errors import HashingError, ValidationError

DEFAULT_ROUNDS = 12

MAX_PASSWORD_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    Raises ValidationError if the password is longer than 72 bytes in UTF-8,
    HashingError if a salt cannot be generated (entropy source failure).
    """
    encoded = _encode(plain)
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError("password", f"password too long (max {MAX_PASSWORD_BYTES} bytes)")
    try:
        salt = bcrypt.gensalt(rounds=rounds)
    except (OSError, NotImplementedError) as exc:
        raise HashingError("Password hashing failed.") from exc
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext matches the bcrypt hash, False otherwise.

    bcrypt.checkpw compares in constant time. Input over 72 bytes can never
    have been hashed, so it is a mismatch. A hash that is not a bcrypt string
    at all raises HashingError rather than returning False, so a corrupted
    record shows up as an internal error instead of a silent "wrong password".
    """
    encoded = _encode(plain)
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError as exc:
        raise HashingError("Stored password hash is malformed.") from exc
