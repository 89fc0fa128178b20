"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.profile import Profile
from app.models.refresh_token import RefreshToken
from app.models.user import ROLE_ADMIN, ROLE_USER, ROLES, UserAccount

__all__ = [
    "Base",
    "Profile",
    "RefreshToken",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ROLES",
    "UserAccount",
]
