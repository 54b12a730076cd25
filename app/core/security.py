"""Password hashing and one-time code generation for account verification."""

import secrets
from datetime import datetime, timedelta

import bcrypt

from app.services.errors import HashingError

# Default bcrypt cost (log2 rounds); overridden by BCRYPT_ROUNDS in settings.
DEFAULT_BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 255

DEFAULT_OTP_LENGTH = 6


def _password_bytes(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain_password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(_password_bytes(plain_password), salt).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise HashingError("Failed to hash password") from e


def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a plain password against a stored hash.

    A mismatch returns False; a stored hash bcrypt cannot parse raises HashingError.
    """
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError) as e:
        raise HashingError("Stored password hash is malformed") from e


# Verified against when login targets an unknown email, so that path costs the
# same bcrypt work as a wrong password.
_DUMMY_HASH: str | None = None


def verify_dummy_password(plain_password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> bool:
    """Burn one bcrypt verification; always returns False."""
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = hash_password(secrets.token_urlsafe(16), rounds=rounds)
    verify_password(plain_password, _DUMMY_HASH)
    return False


def generate_otp(length: int = DEFAULT_OTP_LENGTH) -> str:
    """Return a random numeric code of ``length`` digits (leading zeros kept)."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


def otp_expiry(now: datetime, minutes: int) -> datetime:
    """Expiry horizon for an OTP issued at ``now``."""
    return now + timedelta(minutes=minutes)
