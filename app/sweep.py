"""
CLI entrypoint for the refresh-token sweep. Run from cron, e.g.:

  python -m app.sweep

Or hourly: 0 * * * * cd /path/to/app && .venv/bin/python -m app.sweep

Runs regardless of TOKEN_SWEEP_ENABLED, which only controls the in-process sweeper.
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services.token_sweep import run_token_sweep

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Run one sweep: delete expired refresh tokens and revoked ones past retention."""
    settings = get_settings()
    db = SessionLocal()
    try:
        result = run_token_sweep(db, settings)
        logger.info(
            "Sweep completed: expired_deleted=%s, revoked_deleted=%s",
            result.expired_deleted,
            result.revoked_deleted,
        )
        return 0
    except Exception as e:
        logger.exception("Sweep job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
