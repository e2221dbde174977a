"""
auth/passwords.py -- Credential hashing with bcrypt.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt only reads the first 72 *bytes* of its input and newer releases refuse
anything longer. MAX_PASSWORD_BYTES is that limit; password_too_long() is the
check the account validators and the API models share.

verify_password() treats an over-long candidate as a mismatch: hash_password()
never accepts one, so no stored hash can match it. Any other bcrypt failure
raises PasswordHashingError instead of returning a sentinel -- a stored hash
bcrypt cannot parse is corruption, not a wrong password.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

import logging

import bcrypt

from core.errors import PasswordHashingError

logger = logging.getLogger("gatehouse.auth.passwords")

MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers validate length first (validate_new_account, the API models);
    reaching the error below means that check was bypassed.
    """
    if password_too_long(plain):
        logger.error("Refusing to hash a password longer than %d bytes", MAX_PASSWORD_BYTES)
        raise PasswordHashingError()
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    except ValueError as exc:
        logger.error("Password hashing failed: %s", exc)
        raise PasswordHashingError() from exc


def verify_password(hashed: str, plain: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError as exc:
        logger.error("Stored password hash could not be verified: %s", exc)
        raise PasswordHashingError() from exc
