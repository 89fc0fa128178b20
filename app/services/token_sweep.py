"""
Periodic refresh-token sweep.

run_token_sweep() is one pass (used by the CLI in app.sweep and by TokenSweeper).
TokenSweeper runs it on an interval as an asyncio task in the FastAPI lifespan,
offloading the blocking database work to a worker thread. With several app
instances on one database, enable the sweeper on one of them only
(TOKEN_SWEEP_ENABLED=false elsewhere).
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.services.refresh_tokens import RefreshTokenManager, SweepResult

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_token_sweep(session: Session, settings: "Settings") -> SweepResult:
    """Delete expired refresh tokens and revoked ones past retention. Idempotent."""
    return RefreshTokenManager.from_settings(session, settings).sweep()


class TokenSweeper:
    """Background loop calling run_token_sweep every `interval_seconds`."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: "Settings",
        interval_seconds: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.TOKEN_SWEEP_INTERVAL_SECONDS
        )
        self._stopped = asyncio.Event()
        self.runs = 0

    def sweep_once(self) -> SweepResult:
        session = self.session_factory()
        try:
            return run_token_sweep(session, self.settings)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    async def run_loop(self) -> None:
        logger.info("Token sweeper started: interval=%ss", self.interval_seconds)
        while not self._stopped.is_set():
            try:
                await asyncio.to_thread(self.sweep_once)
                self.runs += 1
            except Exception:
                # Keep the loop alive; the next tick retries.
                logger.exception("Refresh token sweep failed")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Token sweeper stopped")

    def stop(self) -> None:
        self._stopped.set()
