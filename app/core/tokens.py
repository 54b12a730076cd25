"""Signed, time-bounded access and refresh tokens (JWT, one shared secret)."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Literal, Protocol

import jwt

from app.services.errors import InvalidTokenError

if TYPE_CHECKING:
    from app.core.config import Settings

TokenType = Literal["access", "refresh"]
ACCESS: TokenType = "access"
REFRESH: TokenType = "refresh"

BEARER_PREFIX = "bearer"


class TokenSubject(Protocol):
    """Anything carrying the identity fields embedded in a token (e.g. a User row)."""

    id: int
    username: str
    email: str
    role: Any


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims decoded from a verified token."""

    user_id: int
    username: str
    email: str
    role: str
    token_type: TokenType
    jti: str
    issued_at: datetime
    expires_at: datetime
    session_id: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


@dataclass(frozen=True)
class TokenIntrospection:
    is_valid: bool
    is_expired: bool
    claims: TokenClaims | None = None


def utcnow() -> datetime:
    return datetime.now(UTC)


def extract_bearer_token(header_value: str | None) -> str | None:
    """
    Parse ``Authorization: Bearer <token>``.

    Returns None when the header is absent or not a bearer credential; callers
    decide whether that is fatal.
    """
    if not header_value:
        return None
    parts = header_value.strip().split()
    if len(parts) != 2 or parts[0].lower() != BEARER_PREFIX:
        return None
    return parts[1]


def _role_value(role: Any) -> str:
    return getattr(role, "value", role)


class TokenService:
    """
    Issue and verify access/refresh JWTs.

    Pure computation: no I/O and no shared mutable state, so it is safe to call
    inline from request handlers. ``clock`` supplies issued-at times and the
    reference time for introspect; verify checks expiry against wall-clock
    time through PyJWT.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret must be non-empty")
        self._secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Callable[[], datetime] = utcnow
    ) -> TokenService:
        return cls(
            secret=settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=timedelta(seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS),
            refresh_ttl=timedelta(seconds=settings.REFRESH_TOKEN_EXPIRE_SECONDS),
            clock=clock,
        )

    extract_bearer_token = staticmethod(extract_bearer_token)

    @property
    def access_expires_in(self) -> int:
        """Access-token lifetime in seconds, returned to clients as expiresIn."""
        return int(self.access_ttl.total_seconds())

    def _issue(
        self,
        subject: TokenSubject,
        token_type: TokenType,
        ttl: timedelta,
        session_id: str | None = None,
    ) -> str:
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(subject.id),
            "username": subject.username,
            "email": subject.email,
            "role": _role_value(subject.role),
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "sid": session_id or uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_access_token(self, subject: TokenSubject, session_id: str | None = None) -> str:
        return self._issue(subject, ACCESS, self.access_ttl, session_id)

    def issue_refresh_token(self, subject: TokenSubject, session_id: str | None = None) -> str:
        return self._issue(subject, REFRESH, self.refresh_ttl, session_id)

    def issue_pair(self, subject: TokenSubject) -> TokenPair:
        """
        Issue a fresh access/refresh pair for ``subject``.

        Both tokens share one ``sid`` claim, so a logout authenticated by the
        access token can retire the refresh token issued with it.
        """
        session_id = uuid.uuid4().hex
        return TokenPair(
            access_token=self.issue_access_token(subject, session_id),
            refresh_token=self.issue_refresh_token(subject, session_id),
            expires_in=self.access_expires_in,
        )

    def _decode(self, token: str, verify_exp: bool = True) -> dict[str, Any]:
        """Decode and check signature; raises InvalidTokenError with a reason."""
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": ["sub", "exp", "iat", "jti", "type"],
                    "verify_exp": verify_exp,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError(reason=InvalidTokenError.EXPIRED) from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError(reason=InvalidTokenError.INVALID) from e

    @staticmethod
    def _claims_from_payload(payload: dict[str, Any]) -> TokenClaims:
        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                username=str(payload["username"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                token_type=payload["type"],
                jti=str(payload["jti"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), UTC),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), UTC),
                session_id=str(payload["sid"]) if payload.get("sid") else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTokenError(reason=InvalidTokenError.INVALID) from e

    def _verify(self, token: str, expected_type: TokenType) -> TokenClaims:
        claims = self._claims_from_payload(self._decode(token))
        if claims.token_type != expected_type:
            raise InvalidTokenError(reason=InvalidTokenError.WRONG_TYPE)
        return claims

    def verify_access(self, token: str) -> TokenClaims:
        """Verify an access token. Raises InvalidTokenError if expired, tampered or malformed."""
        return self._verify(token, ACCESS)

    def verify_refresh(self, token: str) -> TokenClaims:
        """Verify a refresh token. Raises InvalidTokenError if expired, tampered or malformed."""
        return self._verify(token, REFRESH)

    def introspect(self, token: str) -> TokenIntrospection:
        """Inspect a token without raising; expired tokens still report their claims."""
        try:
            claims = self._claims_from_payload(self._decode(token, verify_exp=False))
        except InvalidTokenError:
            return TokenIntrospection(is_valid=False, is_expired=False)
        is_expired = claims.expires_at <= self._clock()
        return TokenIntrospection(
            is_valid=not is_expired, is_expired=is_expired, claims=claims
        )
