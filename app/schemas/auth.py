"""Request/response schemas for auth and user endpoints."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
)
from app.models.user import UserRole

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
OTP_PATTERN = r"^\s*\d{4,10}\s*$"


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; accepts either on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_image_url(v: str | None) -> str | None:
    if v is None or not v.strip():
        return None
    v = v.strip()
    if len(v) > 2048:
        raise ValueError("Image URL is too long")
    if not (v.startswith("http://") or v.startswith("https://")):
        raise ValueError("Image must be a valid URL")
    return v


ImageUrl = Annotated[str | None, AfterValidator(_check_image_url)]


class RegisterRequest(CamelModel):
    """New customer account; password must be confirmed."""

    username: str = Field(
        ...,
        min_length=USERNAME_MIN_LEN,
        max_length=USERNAME_MAX_LEN,
        pattern=USERNAME_PATTERN,
        description="3-50 characters: letters, digits, underscore",
    )
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    confirm_password: str = Field(..., description="Must equal password")
    image: ImageUrl = None

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class VerifyOtpRequest(CamelModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    otp: str = Field(..., pattern=OTP_PATTERN)


class ResendOtpRequest(CamelModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class LoginRequest(CamelModel):
    """Credentials for login."""

    email: str = Field(..., min_length=1, max_length=255, description="Email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class RefreshTokenRequest(CamelModel):
    """Body fallback when the refresh cookie is not sent."""

    refresh_token: str | None = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class UpdateProfileRequest(CamelModel):
    username: str | None = Field(
        default=None,
        min_length=USERNAME_MIN_LEN,
        max_length=USERNAME_MAX_LEN,
        pattern=USERNAME_PATTERN,
    )
    email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    image: ImageUrl = None


class AccountOut(CamelModel):
    """Sanitized account: no password hash, no OTP fields."""

    id: int
    username: str
    email: str
    image: str | None = None
    role: UserRole
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TokensOut(CamelModel):
    access_token: str
    refresh_token: str
    expires_in: int = Field(..., description="Seconds until the access token expires")
    token_type: str = "bearer"


class AccountResponse(CamelModel):
    user: AccountOut
    message: str


class SessionResponse(CamelModel):
    """Login/refresh result; tokens are also set as cookies."""

    user: AccountOut
    tokens: TokensOut
    message: str


class MessageResponse(CamelModel):
    message: str


class AccountListResponse(CamelModel):
    users: list[AccountOut]


class CurrentUser(CamelModel):
    """Identity attached to a request by the auth dependencies (from token claims)."""

    id: int
    username: str
    email: str
    role: UserRole


def tokens_out(pair: Any) -> TokensOut:
    return TokensOut(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        token_type=pair.token_type,
    )
