"""Auth endpoints: registration with OTP, login, refresh rotation, logout."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Request, Response, status

from app.api.deps import get_account_service, get_cookie_policy, get_presented_access_token
from app.core.cookies import REFRESH_TOKEN_COOKIE, CookiePolicy
from app.schemas.auth import (
    AccountOut,
    AccountResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResendOtpRequest,
    SessionResponse,
    VerifyOtpRequest,
    tokens_out,
)
from app.services.accounts import AccountService, AuthenticatedSession
from app.services.errors import UnauthenticatedError

logger = logging.getLogger(__name__)
router = APIRouter()

REGISTER_MESSAGE = "Registration successful. Please check your email for OTP verification."
RESEND_MESSAGE = "OTP resent successfully. Please check your email."


def _presented_refresh_token(request: Request, body: RefreshTokenRequest | None) -> str | None:
    """Refresh token from its path-scoped cookie, else from the JSON body."""
    token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if token:
        return token
    if body is not None and body.refresh_token:
        return body.refresh_token
    return None


def _session_response(
    session: AuthenticatedSession,
    response: Response,
    cookies: CookiePolicy,
    message: str,
) -> SessionResponse:
    pair = session.tokens
    cookies.set_auth_cookies(response, pair.access_token, pair.refresh_token, pair.expires_in)
    return SessionResponse(
        user=AccountOut.model_validate(session.account),
        tokens=tokens_out(pair),
        message=message,
    )


@router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountResponse:
    """Create a pending account and email it a verification code. The code is never returned."""
    result = accounts.register(
        username=body.username,
        email=body.email,
        password=body.password,
        image=body.image,
    )
    return AccountResponse(user=AccountOut.model_validate(result.account), message=REGISTER_MESSAGE)


@router.post("/verify-otp", response_model=AccountResponse)
def verify_otp(
    body: VerifyOtpRequest,
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountResponse:
    account = accounts.verify_otp(body.email, body.otp)
    return AccountResponse(
        user=AccountOut.model_validate(account), message="Account verified successfully"
    )


@router.post("/resend-otp", response_model=AccountResponse)
def resend_otp(
    body: ResendOtpRequest,
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> AccountResponse:
    result = accounts.resend_otp(body.email)
    return AccountResponse(user=AccountOut.model_validate(result.account), message=RESEND_MESSAGE)


@router.post("/login", response_model=SessionResponse)
def login(
    body: LoginRequest,
    response: Response,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    cookies: Annotated[CookiePolicy, Depends(get_cookie_policy)],
) -> SessionResponse:
    """
    Authenticate with email and password; returns the token pair and sets the
    access_token and refresh_token cookies. Send the access token as
    Authorization: Bearer <accessToken> or rely on the cookie.
    """
    session = accounts.authenticate(body.email, body.password)
    return _session_response(session, response, cookies, "Login successful")


@router.post("/refresh-token", response_model=SessionResponse)
def refresh_token(
    request: Request,
    response: Response,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    cookies: Annotated[CookiePolicy, Depends(get_cookie_policy)],
    body: Annotated[RefreshTokenRequest | None, Body()] = None,
) -> SessionResponse:
    """Exchange a refresh token (cookie or body) for a new pair; the old one is retired."""
    token = _presented_refresh_token(request, body)
    if token is None:
        raise UnauthenticatedError("Refresh token is required from cookies or request body")
    session = accounts.refresh(token)
    return _session_response(session, response, cookies, "Token refreshed successfully")


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    cookies: Annotated[CookiePolicy, Depends(get_cookie_policy)],
    access_token: Annotated[str | None, Depends(get_presented_access_token)],
    body: Annotated[RefreshTokenRequest | None, Body()] = None,
) -> MessageResponse:
    """
    Clear both auth cookies and end the session server-side: the refresh token
    (body, or cookie where the client sends it) and the session of the access
    token (header or cookie) are both revoked. Never fails.
    """
    accounts.logout(_presented_refresh_token(request, body), access_token=access_token)
    cookies.clear_all_auth_cookies(response)
    return MessageResponse(message="Logout successful")
