"""Data access for accounts and revoked refresh tokens over a SQLAlchemy session."""

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import RevokedToken, User
from app.services.errors import DuplicateError, InvalidTokenError

logger = logging.getLogger(__name__)


class AccountRepository:
    """
    find/create/update/delete for User rows.

    Uniqueness of username and email is enforced by the database; create and
    update translate a unique-constraint violation into DuplicateError, so
    callers' pre-checks are only an early exit.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, account_id: int) -> User | None:
        return self.db.get(User, account_id)

    def find_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def find_by_username_or_email(self, username: str, email: str) -> User | None:
        """Single existence lookup across both unique fields."""
        return (
            self.db.query(User)
            .filter(or_(User.username == username, User.email == email))
            .first()
        )

    def username_taken(self, username: str, exclude_id: int | None = None) -> bool:
        q = self.db.query(User.id).filter(User.username == username)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        return q.first() is not None

    def email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        q = self.db.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        return q.first() is not None

    def find_pending_by_email(self, email: str) -> User | None:
        """Account awaiting first activation: never verified and never soft-deleted."""
        return (
            self.db.query(User)
            .filter(
                User.email == email,
                User.is_active.is_(False),
                User.activated_at.is_(None),
                User.deactivated_at.is_(None),
            )
            .first()
        )

    def find_by_valid_otp(self, email: str, otp: str, now: datetime) -> User | None:
        """Match email, code and expiry in one query so wrong and expired codes look alike."""
        return (
            self.db.query(User)
            .filter(
                User.email == email,
                User.otp == otp,
                User.otp_expires_at > now,
                User.deactivated_at.is_(None),
            )
            .first()
        )

    def list_active(self) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.is_active.is_(True))
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

    def list_by_role(self, role: str) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.role == role, User.is_active.is_(True))
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

    def search(self, term: str) -> list[User]:
        pattern = f"%{term}%"
        return (
            self.db.query(User)
            .filter(
                or_(User.username.ilike(pattern), User.email.ilike(pattern)),
                User.is_active.is_(True),
            )
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

    def create(self, user: User) -> User:
        """Insert and commit; unique violations become DuplicateError."""
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info("Account insert rejected by unique constraint")
            raise DuplicateError() from e
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateError() from e
        self.db.refresh(user)
        return user

    def delete(self, account_id: int) -> bool:
        """Hard delete by id. Idempotent: returns False if the row is already gone."""
        deleted = (
            self.db.query(User)
            .filter(User.id == account_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0


class RevocationStore:
    """Denylist of refresh-token ids, consulted on refresh."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def is_revoked(self, jti: str) -> bool:
        return self.db.get(RevokedToken, jti) is not None

    def revoke(self, jti: str, user_id: int, expires_at: datetime) -> None:
        """
        Insert the jti. A second insert of the same jti (a concurrent or replayed
        use of one refresh token) violates the primary key and is reported as
        InvalidTokenError(reason=revoked).
        """
        self.db.add(RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at))
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise InvalidTokenError(reason=InvalidTokenError.REVOKED) from e

    def purge_expired(self, now: datetime) -> int:
        deleted = (
            self.db.query(RevokedToken)
            .filter(RevokedToken.expires_at <= now)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
