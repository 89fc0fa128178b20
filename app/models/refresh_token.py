"""ORM model for refresh tokens. Only the SHA-256 digest of the raw token is stored."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.models.base import Base, as_utc, utcnow


class RefreshToken(Base):
    """
    Opaque refresh token issued at login/register/rotation.

    Revoked (never deleted) on rotation, logout or account deletion; hard-deleted
    by the periodic sweep once expired or revoked past the retention window.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    is_revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= now
