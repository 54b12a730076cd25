"""ORM model for customer and staff accounts (auth and RBAC)."""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, func

from app.models.base import Base


class UserRole(str, enum.Enum):
    """Closed set of account roles; stored by value."""

    GUEST = "ROLE_GUEST"
    USER = "ROLE_USER"
    STAFF = "ROLE_STAFF"
    ADMIN = "ROLE_ADMIN"
    SUPER_ADMIN = "ROLE_SUPER_ADMIN"

    @property
    def is_pre_activated(self) -> bool:
        """Staff and above are created active; everyone else verifies by OTP."""
        return self in PRE_ACTIVATED_ROLES

    @property
    def description(self) -> str:
        return ROLE_DESCRIPTIONS[self]


PRE_ACTIVATED_ROLES = frozenset({UserRole.STAFF, UserRole.ADMIN, UserRole.SUPER_ADMIN})

ROLE_DESCRIPTIONS = {
    UserRole.SUPER_ADMIN: "Super Admin - Full system access",
    UserRole.ADMIN: "Admin - System management access",
    UserRole.STAFF: "Staff - Limited management access",
    UserRole.USER: "User - Standard user access",
    UserRole.GUEST: "Guest - Read-only access",
}


class User(Base):
    """
    Account used for login, token issuance and role checks.

    otp/otp_expires_at are both set during a pending verification window and
    both NULL otherwise. activated_at is set the first time the account becomes
    active. deactivated_at is set by soft delete; a deactivated row is never
    pending again, whether or not it was ever activated.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(otp IS NULL) = (otp_expires_at IS NULL)",
            name="otp_pair",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    image = Column(String(2048), nullable=True)
    role = Column(String(32), nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, nullable=False, default=False)
    otp = Column(String(16), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def is_pending(self) -> bool:
        return (
            not self.is_active
            and self.activated_at is None
            and self.deactivated_at is None
        )

    def clear_otp(self) -> None:
        self.otp = None
        self.otp_expires_at = None
