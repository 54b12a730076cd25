"""
CLI entrypoint for the data retention job. Run from cron, e.g.:

  python -m app.retention

Or hourly: 0 * * * * cd /path/to/storefront && .venv/bin/python -m app.retention
"""

import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from app.core.database import SessionLocal
from app.services.retention import run_retention

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Purge expired revoked tokens and stale OTPs."""
    db = SessionLocal()
    try:
        revoked_deleted, otps_cleared = run_retention(db)
        logger.info(
            "Retention completed: revoked_tokens_deleted=%s otps_cleared=%s",
            revoked_deleted,
            otps_cleared,
        )
        return 0
    except SQLAlchemyError as e:
        logger.exception("Retention job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
