"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RefreshTokenHealth(BaseModel):
    """Refresh token table counts."""

    total: int
    active: int
    expired: int
    revoked: int


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Literal["ok"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    database: Literal["connected", "disconnected"] | None = Field(
        default=None,
        description="Database connectivity status when check is performed",
    )
    refresh_tokens: RefreshTokenHealth | None = Field(
        default=None,
        description="Refresh token counts; omitted when the database is unreachable",
    )
