"""Request/response schemas for auth endpoints. JSON keys are camelCase; snake_case is accepted on input."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    """Registration body: credentials plus optional profile fields."""

    email: str = Field(..., max_length=255, description="Email (case-insensitive)")
    password: str = Field(..., max_length=100, description="Password (8-100 chars, mixed classes)")
    slug: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=255)
    headline: str | None = Field(default=None, max_length=255)
    bio: str | None = Field(default=None, max_length=4000)
    photo_url: str | None = Field(default=None, max_length=255)
    github_url: str | None = Field(default=None, max_length=255)
    linkedin_url: str | None = Field(default=None, max_length=255)
    twitter_url: str | None = Field(default=None, max_length=255)
    website_url: str | None = Field(default=None, max_length=255)
    location: str | None = Field(default=None, max_length=255)


class LoginRequest(CamelModel):
    """Credentials for login. No length limits: an over-long value is just a failed login."""

    email: str
    password: str


class RefreshRequest(CamelModel):
    """Any string is accepted; unknown or malformed tokens are rejected by the service with 401."""

    refresh_token: str


class ProfileSummary(CamelModel):
    """Public profile fields returned alongside tokens."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    slug: str
    name: str
    headline: str | None = None
    bio: str | None = None
    photo_url: str | None = None
    github_url: str | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    website_url: str | None = None
    location: str | None = None


class AuthResponse(CamelModel):
    """Tokens issued by register/login/refresh. expiresAt is the access token expiry in epoch ms."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_at: int
    profile: ProfileSummary | None = None


class CurrentUser(CamelModel):
    """Account fields of the authenticated user; base of MeResponse."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    email: str
    role: str


class MeResponse(CurrentUser):
    profile: ProfileSummary | None = None
