"""ORM model for the refresh-token denylist."""

from sqlalchemy import Column, DateTime, Integer, String, func

from app.models.base import Base


class RevokedToken(Base):
    """
    One row per revoked refresh token, keyed by its jti.

    Rows are only meaningful until expires_at (the token's own exp); the
    retention job deletes them after that.
    """

    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
