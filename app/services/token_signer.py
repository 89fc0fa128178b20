"""
Access token issuing and verification (JWT, HMAC-SHA).

A TokenSigner is built once at startup from validated settings and passed to the
components that need it. Access tokens are not individually revocable: their
short lifetime bounds the exposure window.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

import jwt

from app.core.config import MIN_JWT_SECRET_BYTES
from app.core.errors import AuthenticationError, ConfigurationError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "iat", "exp")


class TokenErrorKind(str, Enum):
    """Why an access token was rejected. Logged internally, never sent to clients."""

    EXPIRED = "expired"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class AccessClaims:
    email: str
    role: str | None
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedAccessToken:
    token: str
    expires_at: datetime

    @property
    def expires_at_ms(self) -> int:
        """Expiry as epoch milliseconds (the wire format of `expiresAt`)."""
        return int(self.expires_at.timestamp() * 1000)


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of verifying a token: exactly one of claims / error is set."""

    claims: AccessClaims | None = None
    error: TokenErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


class TokenSigner:
    """Issues and verifies signed access tokens carrying subject=email and role."""

    def __init__(
        self,
        secret: str | None,
        access_ttl: timedelta = timedelta(hours=1),
        algorithm: str = "HS256",
    ) -> None:
        if not secret or not secret.strip():
            raise ConfigurationError(
                "JWT secret must be set via environment variable JWT_SECRET."
            )
        key = secret.encode("utf-8")
        if len(key) < MIN_JWT_SECRET_BYTES:
            raise ConfigurationError(
                f"JWT secret must be at least {MIN_JWT_SECRET_BYTES} bytes."
            )
        self._key = key
        self._algorithm = algorithm
        self._access_ttl = access_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenSigner:
        return cls(
            secret=settings.JWT_SECRET.get_secret_value(),
            access_ttl=settings.access_token_ttl,
            algorithm=settings.JWT_ALGORITHM,
        )

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    def issue(self, user: Any) -> IssuedAccessToken:
        """Create a token for `user` (anything with .email and .role)."""
        now = datetime.now(timezone.utc)
        expires_at = now + self._access_ttl
        payload: dict[str, Any] = {
            "sub": user.email,
            "role": user.role,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._key, algorithm=self._algorithm)
        # JWT timestamps have one-second resolution; report what the token carries.
        return IssuedAccessToken(
            token=token,
            expires_at=datetime.fromtimestamp(int(expires_at.timestamp()), tz=timezone.utc),
        )

    def verify(self, token: str) -> TokenVerification:
        """Verify signature and expiry; never raises for a bad token."""
        try:
            payload = jwt.decode(
                token,
                self._key,
                algorithms=[self._algorithm],
                options={"require": list(REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError:
            return TokenVerification(error=TokenErrorKind.EXPIRED)
        except jwt.InvalidSignatureError:
            return TokenVerification(error=TokenErrorKind.BAD_SIGNATURE)
        except jwt.InvalidAlgorithmError:
            return TokenVerification(error=TokenErrorKind.UNSUPPORTED)
        except jwt.PyJWTError:
            return TokenVerification(error=TokenErrorKind.MALFORMED)

        email = payload.get("sub")
        if not isinstance(email, str) or not email.strip():
            return TokenVerification(error=TokenErrorKind.MALFORMED)
        try:
            claims = AccessClaims(
                email=email,
                role=payload.get("role"),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (TypeError, ValueError, OverflowError):
            return TokenVerification(error=TokenErrorKind.MALFORMED)
        return TokenVerification(claims=claims)

    def verify_and_extract(self, token: str) -> AccessClaims:
        """Return the verified claims or raise AuthenticationError(reason=<kind>)."""
        result = self.verify(token)
        if result.claims is None:
            kind = result.error.value if result.error else TokenErrorKind.MALFORMED.value
            raise AuthenticationError("Invalid or expired token", reason=kind)
        return result.claims

    def extract_email(self, token: str) -> str:
        return self.verify_and_extract(token).email

    def is_valid(self, token: str, user: Any) -> bool:
        """True iff the token's subject is the user's email (case-insensitive) and it has not expired."""
        result = self.verify(token)
        if result.claims is None:
            return False
        if result.claims.email.lower() != (user.email or "").lower():
            return False
        return result.claims.expires_at > datetime.now(timezone.utc)
