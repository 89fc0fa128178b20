"""Auth routes (register, login, refresh, logout, delete-account) and auth dependencies."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.api.middleware import Principal
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.errors import AuthenticationError, PermissionDeniedError
from app.models import ROLE_ADMIN
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    RefreshRequest,
    RegisterRequest,
)
from app.services.auth import AuthService
from app.services.token_signer import TokenSigner
from app.services.users import CachedUser, CachedUserStore, UserCache, UserStore

router = APIRouter()


def get_signer(request: Request) -> TokenSigner:
    return request.app.state.signer


def get_user_cache(request: Request) -> UserCache:
    return request.app.state.user_cache


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    signer: Annotated[TokenSigner, Depends(get_signer)],
    user_cache: Annotated[UserCache, Depends(get_user_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthService:
    return AuthService.build(db, signer, user_cache, settings)


def get_current_principal(request: Request) -> Principal:
    """Dependency: require the principal set by AuthenticationMiddleware. Raises 401 otherwise."""
    principal = getattr(request.state, "principal", None)
    if principal is None:
        reason = getattr(request.state, "auth_error", None) or "missing_token"
        raise AuthenticationError("Authentication required", reason=reason)
    return principal


def get_current_user(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[Session, Depends(get_db)],
    user_cache: Annotated[UserCache, Depends(get_user_cache)],
) -> CachedUser:
    """Dependency: the authenticated user's account snapshot. Raises 401 if it no longer exists."""
    user = CachedUserStore(UserStore(db), user_cache).find_by_email(principal.email)
    if user is None:
        raise AuthenticationError("Authentication required", reason="unknown_user")
    return user


def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Dependency: require an authenticated ADMIN. Raises 403 for other roles."""
    if f"ROLE_{ROLE_ADMIN}" not in principal.authorities:
        raise PermissionDeniedError("Admin access required")
    return principal


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """
    Create an account and its profile; returns an access token, a refresh token
    and the profile summary. 409 when the email or requested slug is taken.
    """
    return service.register(body)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns fresh access and refresh tokens.
    Include the access token in the Authorization header as: Bearer <accessToken>
    """
    return service.login(body.email, body.password)


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    body: RefreshRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """Exchange a refresh token for a new access token and a new refresh token (one-time use)."""
    return service.refresh(body.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def logout(
    user: Annotated[CachedUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> Response:
    """Revoke all refresh tokens of the caller. Issued access tokens remain valid until expiry."""
    service.logout(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/delete-account", status_code=status.HTTP_204_NO_CONTENT, response_class=Response
)
def delete_account(
    user: Annotated[CachedUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> Response:
    """Revoke all tokens and delete the caller's profile and account."""
    service.delete_account(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=MeResponse)
def me(
    user: Annotated[CachedUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MeResponse:
    """Return the authenticated account and its profile summary."""
    return service.me(user)


@router.post("/cache/evict", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def evict_user_cache(
    _admin: Annotated[Principal, Depends(require_admin)],
    user_cache: Annotated[UserCache, Depends(get_user_cache)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Drop every cached user lookup (admin only)."""
    CachedUserStore(UserStore(db), user_cache).evict_all()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/cache/evict/{email}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response
)
def evict_cached_user(
    email: str,
    _admin: Annotated[Principal, Depends(require_admin)],
    user_cache: Annotated[UserCache, Depends(get_user_cache)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Drop one user's cached lookup (admin only), e.g. after a direct database edit."""
    CachedUserStore(UserStore(db), user_cache).evict(email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
