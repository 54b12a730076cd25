"""Data retention: drop expired denylist rows and stale OTP codes."""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.models import User
from app.services.repository import RevocationStore

logger = logging.getLogger(__name__)


def run_retention(session: Session, now: datetime | None = None) -> tuple[int, int]:
    """
    Delete revoked-token rows whose token has expired anyway, and clear expired
    OTP codes (code and expiry together) on pending accounts.

    Returns (revoked_tokens_deleted, otps_cleared). Idempotent: safe to run repeatedly.
    """
    now = now or datetime.now(timezone.utc)
    revoked_deleted = RevocationStore(session).purge_expired(now)

    otps_cleared = (
        session.query(User)
        .filter(
            User.is_active.is_(False),
            User.otp_expires_at.is_not(None),
            User.otp_expires_at <= now,
        )
        .update({User.otp: None, User.otp_expires_at: None}, synchronize_session=False)
    )
    session.commit()

    if revoked_deleted or otps_cleared:
        logger.info(
            "Retention run: now=%s, revoked_tokens_deleted=%s, otps_cleared=%s",
            now.isoformat(),
            revoked_deleted,
            otps_cleared,
        )
    return (revoked_deleted, otps_cleared)
