"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AuthResponse,
    CurrentUser,
    LoginRequest,
    MeResponse,
    ProfileSummary,
    RefreshRequest,
    RegisterRequest,
)
from app.schemas.health import HealthResponse, RefreshTokenHealth

__all__ = [
    "AuthResponse",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MeResponse",
    "ProfileSummary",
    "RefreshRequest",
    "RefreshTokenHealth",
    "RegisterRequest",
]
