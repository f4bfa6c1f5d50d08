"""Password hashing and input length limits for account credentials."""

import bcrypt

# Bcrypt cost used when the caller does not pass one (matches Settings.BCRYPT_ROUNDS).
BCRYPT_ROUNDS = 10

# Min/max lengths for account fields (input validation).
USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 64
DISPLAY_NAME_MAX_LEN = 100
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

AVATAR_DATA_PREFIX = "data:image"


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (constant-time inside bcrypt)."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def is_avatar_data(value: str | None) -> bool:
    """True if value looks like an embedded image (data:image/...;base64,...)."""
    return isinstance(value, str) and value.startswith(AVATAR_DATA_PREFIX)
