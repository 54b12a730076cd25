"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AccountListResponse,
    AccountOut,
    AccountResponse,
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResendOtpRequest,
    SessionResponse,
    TokensOut,
    UpdateProfileRequest,
    VerifyOtpRequest,
)
from app.schemas.health import HealthResponse

__all__ = [
    "AccountListResponse",
    "AccountOut",
    "AccountResponse",
    "ChangePasswordRequest",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "RefreshTokenRequest",
    "RegisterRequest",
    "ResendOtpRequest",
    "SessionResponse",
    "TokensOut",
    "UpdateProfileRequest",
    "VerifyOtpRequest",
]
