"""Password hashing, password policy and email normalization for authentication."""

import re

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 100

# At least one lowercase, one uppercase, one digit and one special character.
_PASSWORD_CLASSES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"\d"),
    re.compile(r"[^A-Za-z0-9\s]"),
)
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Checked against when the user does not exist, so login timing does not reveal it.
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=BCRYPT_ROUNDS))


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def burn_password_check(plain_password: str) -> None:
    """Spend the same bcrypt work as a real check; used for unknown users."""
    bcrypt.checkpw(plain_password.encode("utf-8")[:72], _DUMMY_HASH)


def normalize_email(email: str | None) -> str | None:
    """Trim and lowercase; blank input becomes None."""
    if email is None:
        return None
    trimmed = email.strip()
    return trimmed.lower() if trimmed else None


def is_valid_email(email: str) -> bool:
    return len(email) <= EMAIL_MAX_LEN and bool(_EMAIL_RE.match(email))


def password_policy_violation(password: str) -> str | None:
    """Return a human-readable reason the password is too weak, or None if acceptable."""
    if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
        return f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters."
    if not all(pattern.search(password) for pattern in _PASSWORD_CLASSES):
        return (
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one digit, and one special character."
        )
    return None
