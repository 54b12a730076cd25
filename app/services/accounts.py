"""
Account lifecycle: registration with email OTP, login, token refresh, logout,
password change and account administration.

State per account:

    [unregistered] --register--> [pending] --verify_otp--> [active]
    [pending] --resend_otp--> [pending] (new code and expiry)
    [active] --authenticate / refresh--> token pair
    [active] --change_password--> [active]
    [active] --soft_delete--> [deactivated]

Registration is create -> send email -> on send failure delete; the delete is
idempotent, so a retried rollback is harmless.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.security import (
    generate_otp,
    hash_password,
    otp_expiry,
    verify_dummy_password,
    verify_password,
)
from app.core.tokens import ACCESS, TokenClaims, TokenPair, TokenService, utcnow
from app.models import User, UserRole
from app.services.email import OtpMailer, redact_email
from app.services.errors import (
    AccountDeactivatedError,
    AccountNotActivatedError,
    DuplicateError,
    InvalidCredentialsError,
    InvalidOTPError,
    InvalidTokenError,
    NotFoundError,
    NotificationError,
)
from app.services.repository import AccountRepository, RevocationStore

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class PendingVerification:
    """Result of register/resend. ``otp`` is internal; never put it in a response."""

    account: User
    otp: str


@dataclass
class AuthenticatedSession:
    account: User
    tokens: TokenPair


class AccountService:
    """Orchestrates password hashing, OTPs and tokens against the account store."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        mailer: OtpMailer,
        tokens: TokenService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.accounts = AccountRepository(db)
        self.revocations = RevocationStore(db)
        self.settings = settings
        self.mailer = mailer
        self.tokens = tokens
        self._clock = clock

    def _hash(self, plain_password: str) -> str:
        return hash_password(plain_password, rounds=self.settings.BCRYPT_ROUNDS)

    def _new_otp(self) -> tuple[str, datetime]:
        otp = generate_otp(self.settings.OTP_LENGTH)
        return otp, otp_expiry(self._clock(), self.settings.OTP_EXPIRE_MINUTES)

    def _send_otp(self, email: str, otp: str, username: str, account_id: int) -> bool:
        """Mailer result, with a raising mailer counted as a failed send."""
        try:
            return bool(self.mailer.send_otp_email(email, otp, username))
        except Exception:
            logger.exception("OTP mailer raised for account %s", account_id)
            return False

    def _get_or_404(self, account_id: int) -> User:
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError()
        return account

    # Registration and verification

    def register(
        self,
        username: str,
        email: str,
        password: str,
        image: str | None = None,
    ) -> PendingVerification:
        """
        Create a pending ROLE_USER account and email it an OTP.

        Raises DuplicateError if username or email is taken (pre-check or unique
        constraint) and NotificationError if the email cannot be sent, in which
        case the account just created is deleted again.
        """
        if self.accounts.find_by_username_or_email(username, email) is not None:
            raise DuplicateError()

        otp, expires_at = self._new_otp()
        account = self.accounts.create(
            User(
                username=username,
                email=email,
                password_hash=self._hash(password),
                image=image,
                role=UserRole.USER.value,
                is_active=False,
                otp=otp,
                otp_expires_at=expires_at,
            )
        )
        # The compensating delete expires the instance; only use this id afterwards.
        account_id = account.id
        logger.info("Account registered", extra={"account_id": account_id})

        if not self._send_otp(email, otp, username, account_id):
            self.accounts.delete(account_id)
            logger.warning(
                "Registration rolled back: OTP email not sent",
                extra={"account_id": account_id, "to": redact_email(email)},
            )
            raise NotificationError()
        return PendingVerification(account=account, otp=otp)

    def verify_otp(self, email: str, otp: str) -> User:
        """Activate the account matching (email, otp) with an unexpired code; single use."""
        now = self._clock()
        account = self.accounts.find_by_valid_otp(email, otp.strip(), now)
        if account is None:
            raise InvalidOTPError()
        account.is_active = True
        if account.activated_at is None:
            account.activated_at = now
        account.clear_otp()
        self.accounts.save(account)
        logger.info("Account activated", extra={"account_id": account.id})
        return account

    def resend_otp(self, email: str) -> PendingVerification:
        """
        Issue and mail a new code for a pending account.

        Unknown email and already-activated account both raise NotFoundError.
        The account is kept if sending fails.
        """
        account = self.accounts.find_pending_by_email(email)
        if account is None:
            raise NotFoundError("User not found or already activated")
        otp, expires_at = self._new_otp()
        account.otp = otp
        account.otp_expires_at = expires_at
        self.accounts.save(account)
        if not self._send_otp(email, otp, account.username, account.id):
            raise NotificationError()
        logger.info("OTP resent", extra={"account_id": account.id})
        return PendingVerification(account=account, otp=otp)

    # Sessions

    def authenticate(self, email: str, password: str) -> AuthenticatedSession:
        """
        Check credentials and issue a token pair.

        Unknown email and wrong password raise the same InvalidCredentialsError
        (both cost one bcrypt check). Correct credentials on an inactive account
        raise AccountNotActivatedError.
        """
        account = self.accounts.find_by_email(email)
        if account is None:
            verify_dummy_password(password, rounds=self.settings.BCRYPT_ROUNDS)
            logger.info("Login failed")
            raise InvalidCredentialsError()
        if not verify_password(password, account.password_hash):
            logger.info("Login failed")
            raise InvalidCredentialsError()
        if not account.is_active:
            raise AccountNotActivatedError()
        pair = self.tokens.issue_pair(account)
        logger.info("Login succeeded", extra={"account_id": account.id})
        return AuthenticatedSession(account=account, tokens=pair)

    def refresh(self, refresh_token: str) -> AuthenticatedSession:
        """
        Rotate: verify the refresh token, re-read the account, issue a new pair.

        With REFRESH_TOKEN_REVOCATION on, the presented token is denylisted so a
        second use (replay or race) fails with InvalidTokenError, and a token
        whose session was ended by logout is refused the same way.
        """
        claims = self.tokens.verify_refresh(refresh_token)
        revocation = self.settings.REFRESH_TOKEN_REVOCATION
        if revocation and self._is_revoked(claims):
            raise InvalidTokenError(reason=InvalidTokenError.REVOKED)
        account = self.accounts.get(claims.user_id)
        if account is None:
            raise InvalidTokenError()
        if not account.is_active:
            raise AccountNotActivatedError()
        if revocation:
            self.revocations.revoke(claims.jti, account.id, claims.expires_at)
        pair = self.tokens.issue_pair(account)
        logger.info("Tokens refreshed", extra={"account_id": account.id})
        return AuthenticatedSession(account=account, tokens=pair)

    def _is_revoked(self, claims: TokenClaims) -> bool:
        if self.revocations.is_revoked(claims.jti):
            return True
        return claims.session_id is not None and self.revocations.is_revoked(claims.session_id)

    def _revoke_once(self, key: str, user_id: int, expires_at: datetime) -> None:
        if not self.revocations.is_revoked(key):
            self.revocations.revoke(key, user_id, expires_at)

    def logout(self, refresh_token: str | None, access_token: str | None = None) -> None:
        """
        End the session server-side. Never raises.

        The refresh token is revoked if one was presented. The access token
        (header or cookie) is enough on its own: its session id is revoked, which
        retires the refresh token issued in the same pair even when the client
        could not send it. An expired but authentic access token still counts.
        """
        if not self.settings.REFRESH_TOKEN_REVOCATION:
            return
        if refresh_token:
            try:
                claims = self.tokens.verify_refresh(refresh_token)
                self._revoke_once(claims.jti, claims.user_id, claims.expires_at)
                logger.info("Refresh token revoked on logout", extra={"account_id": claims.user_id})
            except InvalidTokenError as e:
                logger.info("Logout with unusable refresh token", extra={"reason": e.reason})
        if access_token:
            session = self.tokens.introspect(access_token).claims
            if session is None or session.token_type != ACCESS or session.session_id is None:
                logger.info("Logout with unusable access token")
                return
            try:
                self._revoke_once(
                    session.session_id,
                    session.user_id,
                    session.issued_at + self.tokens.refresh_ttl,
                )
            except InvalidTokenError:
                return
            logger.info("Session revoked on logout", extra={"account_id": session.user_id})

    # Profile

    def get_profile(self, account_id: int) -> User:
        account = self._get_or_404(account_id)
        if not account.is_active:
            raise AccountDeactivatedError()
        return account

    def change_password(
        self, account_id: int, current_password: str, new_password: str
    ) -> bool:
        account = self._get_or_404(account_id)
        if not account.is_active:
            raise AccountDeactivatedError()
        if not verify_password(current_password, account.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")
        account.password_hash = self._hash(new_password)
        self.accounts.save(account)
        logger.info("Password changed", extra={"account_id": account.id})
        return True

    def update_profile(
        self,
        account_id: int,
        username: str | None = None,
        email: str | None = None,
        image: str | None = None,
    ) -> User:
        account = self.get_profile(account_id)
        if email is not None and email != account.email:
            if self.accounts.email_taken(email, exclude_id=account.id):
                raise DuplicateError("Email already exists")
            account.email = email
        if username is not None and username != account.username:
            if self.accounts.username_taken(username, exclude_id=account.id):
                raise DuplicateError("Username already exists")
            account.username = username
        if image is not None:
            account.image = image
        return self.accounts.save(account)

    # Administration

    def create_account(
        self, username: str, email: str, password: str, role: UserRole
    ) -> PendingVerification | User:
        """
        Operator path (no email sent). Staff and above are active immediately;
        other roles are left pending with an OTP the operator can hand over.
        """
        if self.accounts.find_by_username_or_email(username, email) is not None:
            raise DuplicateError()
        account = User(
            username=username,
            email=email,
            password_hash=self._hash(password),
            role=role.value,
            is_active=role.is_pre_activated,
        )
        if role.is_pre_activated:
            account.activated_at = self._clock()
            return self.accounts.create(account)
        otp, expires_at = self._new_otp()
        account.otp = otp
        account.otp_expires_at = expires_at
        return PendingVerification(account=self.accounts.create(account), otp=otp)

    def get_account(self, account_id: int) -> User:
        return self._get_or_404(account_id)

    def list_active(self) -> list[User]:
        return self.accounts.list_active()

    def list_by_role(self, role: UserRole) -> list[User]:
        return self.accounts.list_by_role(role.value)

    def search(self, term: str) -> list[User]:
        return self.accounts.search(term.strip())

    def soft_delete(self, account_id: int) -> User:
        """Deactivate; the row stays, login and profile reads are refused afterwards."""
        account = self._get_or_404(account_id)
        account.is_active = False
        if account.deactivated_at is None:
            account.deactivated_at = self._clock()
        account.clear_otp()
        self.accounts.save(account)
        logger.info("Account deactivated", extra={"account_id": account.id})
        return account
