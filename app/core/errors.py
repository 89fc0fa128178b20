"""Service error taxonomy, mapped to HTTP responses by the exception handler in app.main."""


class ServiceError(Exception):
    """Base for errors raised by services and rendered as {"detail": message}."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ConfigurationError(ServiceError):
    """Fatal at startup: missing or invalid configuration (e.g. a short JWT secret)."""


class ValidationError(ServiceError):
    """Request body is missing fields or fails validation."""

    status_code = 400


class ConflictError(ServiceError):
    """Duplicate email or slug; the caller may retry with different input."""

    status_code = 409


class AuthenticationError(ServiceError):
    """
    Bad credentials or an invalid/expired/revoked token.

    `reason` is the internal subtype (e.g. "expired", "revoked", "bad_password").
    It is logged but never returned to the client.
    """

    status_code = 401

    def __init__(self, message: str, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(message)


class NotFoundError(ServiceError):
    """Resource absent within an authenticated scope."""

    status_code = 404


class PermissionDeniedError(ServiceError):
    """Authenticated, but the role does not grant access."""

    status_code = 403
