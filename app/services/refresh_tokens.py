"""
Refresh token lifecycle: issue, validate, rotate, revoke, sweep.

Raw tokens are 256-bit random values returned to the caller exactly once; only
their SHA-256 digest is persisted. Per token: Active -> Revoked (rotation, logout,
cap enforcement) and Active|Revoked -> Purged (sweep).

Methods flush but do not commit, so callers control the transaction; sweep()
is a standalone job and commits its own work.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError
from app.models import RefreshToken
from app.models.base import utcnow

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits
DEFAULT_REFRESH_TTL = timedelta(days=7)
DEFAULT_MAX_TOKENS_PER_USER = 5
DEFAULT_REVOKED_RETENTION = timedelta(days=30)


class RefreshTokenErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass(frozen=True)
class RefreshTokenValidation:
    """Outcome of validating a raw refresh token: exactly one of token / error is set."""

    token: RefreshToken | None = None
    error: RefreshTokenErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.token is not None


@dataclass(frozen=True)
class SweepResult:
    expired_deleted: int
    revoked_deleted: int

    @property
    def total(self) -> int:
        return self.expired_deleted + self.revoked_deleted


@dataclass(frozen=True)
class RefreshTokenStats:
    total: int
    active: int
    expired: int
    revoked: int


def hash_token(raw_token: str) -> str:
    """SHA-256 digest of the raw token, base64url without padding."""
    digest = hashlib.sha256(raw_token.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class RefreshTokenManager:
    """Issues and manages refresh tokens for one database session."""

    def __init__(
        self,
        session: Session,
        ttl: timedelta = DEFAULT_REFRESH_TTL,
        max_tokens_per_user: int = DEFAULT_MAX_TOKENS_PER_USER,
        revoked_retention: timedelta = DEFAULT_REVOKED_RETENTION,
    ) -> None:
        self.session = session
        self.ttl = ttl
        self.max_tokens_per_user = max_tokens_per_user
        self.revoked_retention = revoked_retention

    @classmethod
    def from_settings(cls, session: Session, settings: Settings) -> RefreshTokenManager:
        return cls(
            session,
            ttl=settings.refresh_token_ttl,
            max_tokens_per_user=settings.REFRESH_TOKEN_MAX_PER_USER,
            revoked_retention=settings.revoked_token_retention,
        )

    def issue(self, user_id: int) -> str:
        """Persist a new token for the user and return the raw value (never retrievable again)."""
        raw_token = secrets.token_urlsafe(TOKEN_BYTES)
        now = utcnow()
        self._enforce_cap(user_id, now)
        self.session.add(
            RefreshToken(
                token_hash=hash_token(raw_token),
                user_id=user_id,
                expires_at=now + self.ttl,
                is_revoked=False,
                created_at=now,
                updated_at=now,
            )
        )
        self.session.flush()
        logger.debug("Issued refresh token for user_id=%s", user_id)
        return raw_token

    def validate(self, raw_token: str) -> RefreshTokenValidation:
        token = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_token(raw_token))
            .first()
        )
        if token is None:
            return RefreshTokenValidation(error=RefreshTokenErrorKind.NOT_FOUND)
        if token.is_revoked:
            return RefreshTokenValidation(error=RefreshTokenErrorKind.REVOKED)
        if token.is_expired(utcnow()):
            return RefreshTokenValidation(error=RefreshTokenErrorKind.EXPIRED)
        return RefreshTokenValidation(token=token)

    def rotate(self, old_token: RefreshToken) -> str:
        """
        Revoke `old_token` and issue a replacement for the same user.

        The revoke is a conditional update against the stored row, so a second
        rotation of the same token (replay, or a concurrent request) fails.
        """
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == old_token.id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Refresh token rotation rejected (already revoked): token_id=%s user_id=%s",
                old_token.id,
                old_token.user_id,
            )
            raise AuthenticationError("Invalid refresh token", reason="replayed")
        self.session.expire(old_token)
        return self.issue(old_token.user_id)

    def revoke(self, raw_token: str) -> bool:
        """Revoke a single token by its raw value; False if unknown."""
        token = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_token(raw_token))
            .first()
        )
        if token is None:
            return False
        if not token.is_revoked:
            token.is_revoked = True
            token.updated_at = utcnow()
            self.session.flush()
            logger.debug("Revoked refresh token for user_id=%s", token.user_id)
        return True

    def revoke_all(self, user_id: int) -> int:
        """Revoke every non-revoked token of the user. Returns the number revoked."""
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        logger.debug("Revoked %s refresh tokens for user_id=%s", result.rowcount, user_id)
        return result.rowcount

    def active_tokens(self, user_id: int, now: datetime | None = None) -> list[RefreshToken]:
        """Non-revoked, unexpired tokens of the user, newest first."""
        now = now or utcnow()
        return (
            self.session.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
            .all()
        )

    def _enforce_cap(self, user_id: int, now: datetime) -> None:
        # Best-effort under concurrent logins for the same user: two issuers may both
        # see cap-1 active tokens. Linearizable only with a single writer.
        active = self.active_tokens(user_id, now)
        if len(active) < self.max_tokens_per_user:
            return
        excess = active[self.max_tokens_per_user - 1 :]
        for token in excess:
            token.is_revoked = True
            token.updated_at = now
        self.session.flush()
        logger.debug(
            "Revoked %s oldest refresh tokens for user_id=%s (cap=%s)",
            len(excess),
            user_id,
            self.max_tokens_per_user,
        )

    def sweep(self, now: datetime | None = None) -> SweepResult:
        """
        Delete expired tokens, then revoked tokens older than the retention window.

        Only rows already expired or revoked are touched, so this is safe to run
        while rotations are in flight. Idempotent.
        """
        now = now or datetime.now(timezone.utc)
        expired_deleted = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.expires_at < now)
            .delete(synchronize_session=False)
        )
        cutoff = now - self.revoked_retention
        revoked_deleted = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.is_revoked.is_(True), RefreshToken.updated_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        if expired_deleted or revoked_deleted:
            logger.info(
                "Refresh token sweep: expired_deleted=%s, revoked_deleted=%s, revoked_cutoff=%s",
                expired_deleted,
                revoked_deleted,
                cutoff.isoformat(),
            )
        return SweepResult(expired_deleted=expired_deleted, revoked_deleted=revoked_deleted)

    def stats(self) -> RefreshTokenStats:
        now = utcnow()
        query = self.session.query(RefreshToken)
        return RefreshTokenStats(
            total=query.count(),
            active=query.filter(
                RefreshToken.is_revoked.is_(False), RefreshToken.expires_at > now
            ).count(),
            expired=query.filter(RefreshToken.expires_at <= now).count(),
            revoked=query.filter(RefreshToken.is_revoked.is_(True)).count(),
        )
