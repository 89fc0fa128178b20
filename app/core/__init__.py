"""Core app configuration, database and error types."""

from app.core.config import get_settings
from app.core.database import get_db

__all__ = ["get_settings", "get_db"]
