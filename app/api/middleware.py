"""
Bearer token authentication middleware.

Runs once per request and never rejects one: it only establishes
request.state.principal when a valid access token names an existing user.
Route dependencies (get_current_principal, require_admin) decide whether a
route needs identity. When a token is rejected, the reason is left in
request.state.auth_error for logging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.services.users import CachedUserStore, UserStore

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """The authenticated caller for one request."""

    user_id: int
    email: str
    role: str
    authorities: tuple[str, ...]


def bearer_token(header: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header, or None."""
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Resolve the principal from the bearer token via the app's signer and user cache.

    Reads app.state.signer, app.state.user_cache and app.state.session_factory,
    all set by create_app().
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if not hasattr(request.state, "principal"):
            request.state.principal = None
        token = bearer_token(request.headers.get("Authorization"))
        if token is not None:
            await run_in_threadpool(self._authenticate, request, token)
        return await call_next(request)

    def _authenticate(self, request: Request, token: str) -> None:
        app_state = request.app.state
        signer = app_state.signer
        result = signer.verify(token)
        if result.claims is None:
            request.state.auth_error = result.error.value if result.error else "invalid"
            logger.debug(
                "Bearer token rejected: path=%s reason=%s",
                request.url.path,
                request.state.auth_error,
            )
            return
        if request.state.principal is not None:
            return

        session = app_state.session_factory()
        try:
            users = CachedUserStore(UserStore(session), app_state.user_cache)
            user = users.find_by_email(result.claims.email)
        except SQLAlchemyError:
            logger.exception("User lookup failed during authentication; continuing unauthenticated")
            request.state.auth_error = "lookup_failed"
            return
        finally:
            session.close()

        if user is None:
            request.state.auth_error = "unknown_user"
            return
        if not signer.is_valid(token, user):
            request.state.auth_error = "subject_mismatch"
            return
        request.state.principal = Principal(
            user_id=user.id,
            email=user.email,
            role=user.role,
            authorities=(f"ROLE_{user.role}",),
        )
