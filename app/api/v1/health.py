"""Health check endpoint with database connectivity and refresh token counts."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse, RefreshTokenHealth
from app.services.refresh_tokens import RefreshTokenManager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """
    Return service health status, database connectivity and refresh token counts.
    Used by load balancers and monitoring.
    """
    connected = check_db_connected(db)
    refresh_tokens = None
    if connected:
        try:
            stats = RefreshTokenManager.from_settings(db, settings).stats()
            refresh_tokens = RefreshTokenHealth(
                total=stats.total,
                active=stats.active,
                expired=stats.expired,
                revoked=stats.revoked,
            )
        except SQLAlchemyError:
            logger.exception("Refresh token stats query failed")

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        refresh_tokens=refresh_tokens,
    )
