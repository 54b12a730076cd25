"""
Request dependencies: service wiring and the auth gates.

get_current_user reads the access token from the Authorization header, falling
back to the access_token cookie, verifies it and attaches the identity to
request.state.user. require_role builds a gate on top of it.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.cookies import ACCESS_TOKEN_COOKIE, CookiePolicy
from app.core.database import get_db
from app.core.tokens import TokenClaims, TokenService, extract_bearer_token
from app.models.user import UserRole
from app.schemas.auth import CurrentUser
from app.services.accounts import AccountService
from app.services.email import OtpMailer, build_mailer
from app.services.errors import ForbiddenError, InvalidTokenError, UnauthenticatedError


def get_token_service(settings: Annotated[Settings, Depends(get_settings)]) -> TokenService:
    return TokenService.from_settings(settings)


def get_cookie_policy(settings: Annotated[Settings, Depends(get_settings)]) -> CookiePolicy:
    return CookiePolicy.from_settings(settings)


def get_mailer(settings: Annotated[Settings, Depends(get_settings)]) -> OtpMailer:
    return build_mailer(settings)


def get_account_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[OtpMailer, Depends(get_mailer)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AccountService:
    return AccountService(db, settings, mailer, tokens)


def get_presented_access_token(request: Request) -> str | None:
    """Bearer header first, then the access-token cookie; None if neither is present."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token:
        return token
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


def _identity(claims: TokenClaims) -> CurrentUser:
    try:
        role = UserRole(claims.role)
    except ValueError as e:
        raise InvalidTokenError() from e
    return CurrentUser(id=claims.user_id, username=claims.username, email=claims.email, role=role)


def get_current_user(
    request: Request,
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> CurrentUser:
    """Dependency: require a valid access token. 401 if missing, invalid or expired."""
    token = get_presented_access_token(request)
    if token is None:
        raise UnauthenticatedError("Access token is required")
    try:
        user = _identity(tokens.verify_access(token))
    except InvalidTokenError as e:
        raise InvalidTokenError("Invalid or expired access token", reason=e.reason) from e
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> CurrentUser | None:
    """Like get_current_user but never fails; a missing or bad token means anonymous."""
    token = get_presented_access_token(request)
    if token is None:
        return None
    try:
        user = _identity(tokens.verify_access(token))
    except InvalidTokenError:
        return None
    request.state.user = user
    return user


def check_role(user: CurrentUser | None, allowed: frozenset[UserRole]) -> CurrentUser:
    """Raise UnauthenticatedError without identity, ForbiddenError if role not allowed."""
    if user is None:
        raise UnauthenticatedError()
    if user.role not in allowed:
        raise ForbiddenError()
    return user


def require_role(*roles: UserRole):
    """Dependency factory: authenticated user whose role is one of ``roles``."""
    allowed = frozenset(roles)

    def role_checker(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        return check_role(current_user, allowed)

    return role_checker


require_super_admin = require_role(UserRole.SUPER_ADMIN)
require_admin = require_role(UserRole.ADMIN, UserRole.SUPER_ADMIN)
require_staff = require_role(UserRole.STAFF, UserRole.ADMIN, UserRole.SUPER_ADMIN)
