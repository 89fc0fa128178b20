"""ORM model for user accounts (credential store for JWT authentication and RBAC)."""

from sqlalchemy import Column, DateTime, Integer, String

from app.models.base import Base, utcnow

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"
ROLES = (ROLE_USER, ROLE_ADMIN)


class UserAccount(Base):
    """
    User account for JWT authentication and role-based access control.

    email is stored lowercased so lookups are case-insensitive.
    role: 'USER' or 'ADMIN'
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=ROLE_USER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
