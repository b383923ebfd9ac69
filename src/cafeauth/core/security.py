"""Password hashing and session token generation.

Hashing uses Argon2id. Only the user directory adapter and the admin CLI hash
or verify passwords; the services consume the boolean result.
"""

import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

_hasher = PasswordHasher()

# Verified against when the username does not exist, so unknown users cost the
# same time as wrong passwords.
_DUMMY_HASH = _hasher.hash(secrets.token_urlsafe(32))

SESSION_TOKEN_BYTES = 32  # 256 bits


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a password against its hash.

    A missing hash is checked against a dummy hash and always fails.
    """
    if password_hash is None:
        try:
            _hasher.verify(_DUMMY_HASH, password)
        except VerifyMismatchError:
            pass
        return False

    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_session_token() -> str:
    """Generate an unguessable session token (64 hex chars)."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)
