"""
Auth orchestration: register, login, refresh, logout, account deletion.

Composes the cached credential store, the access token signer, the refresh token
manager and the profile collaborator. Each public method is one transaction.
Credential and token failure details go to AuthenticationError.reason (logged by
the API layer); the client-facing message never distinguishes them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.security import (
    burn_password_check,
    hash_password,
    is_valid_email,
    normalize_email,
    password_policy_violation,
    verify_password,
)
from app.models import ROLE_USER, Profile, UserAccount
from app.schemas.auth import AuthResponse, MeResponse, ProfileSummary, RegisterRequest
from app.services.profiles import ProfileService, normalize_slug, trim_to_none
from app.services.refresh_tokens import RefreshTokenManager
from app.services.users import CachedUserStore, UserCache, UserStore

if TYPE_CHECKING:
    from app.core.config import Settings
    from app.services.token_signer import TokenSigner

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"

PROFILE_FIELDS = (
    "headline",
    "bio",
    "photo_url",
    "github_url",
    "linkedin_url",
    "twitter_url",
    "website_url",
    "location",
)


def _summary(profile: Profile | None) -> ProfileSummary | None:
    return ProfileSummary.model_validate(profile) if profile is not None else None


class AuthService:
    def __init__(
        self,
        session: Session,
        signer: TokenSigner,
        users: CachedUserStore,
        tokens: RefreshTokenManager,
        profiles: ProfileService | None = None,
    ) -> None:
        self.session = session
        self.signer = signer
        self.users = users
        self.tokens = tokens
        self.profiles = profiles or ProfileService(session)

    @classmethod
    def build(
        cls,
        session: Session,
        signer: TokenSigner,
        user_cache: UserCache,
        settings: Settings,
    ) -> AuthService:
        return cls(
            session,
            signer,
            users=CachedUserStore(UserStore(session), user_cache),
            tokens=RefreshTokenManager.from_settings(session, settings),
        )

    def register(self, request: RegisterRequest) -> AuthResponse:
        email = normalize_email(request.email)
        password = request.password
        if not email or not password or not password.strip():
            raise ValidationError("Email and password are required")
        if not is_valid_email(email):
            raise ValidationError("Invalid email address")
        violation = password_policy_violation(password)
        if violation:
            raise ValidationError(violation)
        if self.users.exists_by_email(email):
            raise ConflictError("User already exists")

        slug = normalize_slug(request.slug)
        if slug is not None and self.profiles.slug_taken(slug):
            raise ConflictError("Slug already taken")
        display_name = trim_to_none(request.display_name) or email

        try:
            account = self.users.save(
                UserAccount(email=email, password_hash=hash_password(password), role=ROLE_USER)
            )
            profile = self.profiles.create_for_user(
                account.id,
                slug,
                display_name,
                **{name: getattr(request, name) for name in PROFILE_FIELDS},
            )
            response = self._issue_tokens(account, profile)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise ConflictError("Registration failed: email or slug already in use") from e
        logger.info("Registered user_id=%s slug=%s", account.id, profile.slug)
        return response

    def login(self, email: str | None, password: str | None) -> AuthResponse:
        normalized = normalize_email(email)
        if not normalized or not password:
            raise ValidationError("Email and password are required")
        user = self.users.find_by_email(normalized)
        if user is None:
            burn_password_check(password)
            raise AuthenticationError(INVALID_CREDENTIALS, reason="unknown_user")
        if not verify_password(password, user.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS, reason="bad_password")

        response = self._issue_tokens(user, self.profiles.find_by_user_id(user.id))
        self.session.commit()
        logger.info("Login: user_id=%s", user.id)
        return response

    def refresh(self, raw_refresh_token: str) -> AuthResponse:
        validation = self.tokens.validate(raw_refresh_token)
        if validation.token is None:
            reason = validation.error.value if validation.error else "invalid"
            if reason == "revoked":
                logger.warning("Revoked refresh token presented (possible replay)")
            raise AuthenticationError(INVALID_REFRESH_TOKEN, reason=reason)

        stored = validation.token
        account = self.session.get(UserAccount, stored.user_id)
        if account is None:
            raise AuthenticationError(INVALID_REFRESH_TOKEN, reason="unknown_user")
        try:
            new_refresh_token = self.tokens.rotate(stored)
        except AuthenticationError:
            self.session.rollback()
            raise
        access = self.signer.issue(account)
        profile = self.profiles.find_by_user_id(account.id)
        self.session.commit()
        logger.debug("Rotated refresh token for user_id=%s", account.id)
        return AuthResponse(
            access_token=access.token,
            refresh_token=new_refresh_token,
            expires_at=access.expires_at_ms,
            profile=_summary(profile),
        )

    def logout(self, user: Any) -> int:
        """Revoke all refresh tokens of `user`. Issued access tokens stay valid until they expire."""
        revoked = self.tokens.revoke_all(user.id)
        self.session.commit()
        logger.info("Logout: user_id=%s, refresh_tokens_revoked=%s", user.id, revoked)
        return revoked

    def delete_account(self, user: Any) -> None:
        """Revoke tokens, delete the profile, then the account (in that order)."""
        account = self.users.get_account(user.email)
        if account is None:
            raise NotFoundError("Account not found")
        self.tokens.revoke_all(account.id)
        self.profiles.delete_for_user(account.id)
        self.users.delete(account)
        self.session.commit()
        logger.info("Deleted account user_id=%s", user.id)

    def me(self, user: Any) -> MeResponse:
        return MeResponse(
            id=user.id,
            email=user.email,
            role=user.role,
            profile=_summary(self.profiles.find_by_user_id(user.id)),
        )

    def _issue_tokens(self, user: Any, profile: Profile | None) -> AuthResponse:
        access = self.signer.issue(user)
        refresh_token = self.tokens.issue(user.id)
        return AuthResponse(
            access_token=access.token,
            refresh_token=refresh_token,
            expires_at=access.expires_at_ms,
            profile=_summary(profile),
        )
