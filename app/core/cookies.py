"""Cookie transport for auth tokens: one path-scoped, HttpOnly cookie per token type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from starlette.responses import Response

from app.core.tokens import ACCESS, REFRESH, TokenType

if TYPE_CHECKING:
    from app.core.config import Settings

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"
ACCESS_TOKEN_COOKIE_PATH = "/"

SameSite = Literal["strict", "lax", "none"]


@dataclass(frozen=True)
class CookieOptions:
    """Attributes of one auth cookie. max_age is in seconds (HTTP Max-Age)."""

    name: str
    path: str
    max_age: int
    httponly: bool
    secure: bool
    samesite: SameSite


class CookiePolicy:
    """
    Maps each token type to its cookie.

    The refresh cookie is scoped to the refresh endpoint so browsers only send
    it there. Deletion repeats each cookie's exact path and flags: a browser
    ignores a clearing directive whose path differs from the one it stored.
    """

    def __init__(
        self,
        secure: bool,
        refresh_path: str,
        refresh_max_age: int,
        access_path: str = ACCESS_TOKEN_COOKIE_PATH,
        samesite: SameSite = "strict",
    ) -> None:
        self.secure = secure
        self.access_path = access_path
        self.refresh_path = refresh_path
        self.refresh_max_age = refresh_max_age
        self.samesite = samesite

    @classmethod
    def from_settings(cls, settings: Settings) -> CookiePolicy:
        return cls(
            secure=settings.cookie_secure,
            refresh_path=settings.refresh_cookie_path,
            refresh_max_age=settings.REFRESH_TOKEN_EXPIRE_SECONDS,
        )

    def options(self, token_type: TokenType, expires_in: int | None = None) -> CookieOptions:
        """Cookie attributes for ``token_type``; access max-age follows ``expires_in``."""
        if token_type == ACCESS:
            if expires_in is None:
                raise ValueError("expires_in is required for the access token cookie")
            return CookieOptions(
                name=ACCESS_TOKEN_COOKIE,
                path=self.access_path,
                max_age=expires_in,
                httponly=True,
                secure=self.secure,
                samesite=self.samesite,
            )
        if token_type == REFRESH:
            return CookieOptions(
                name=REFRESH_TOKEN_COOKIE,
                path=self.refresh_path,
                max_age=self.refresh_max_age,
                httponly=True,
                secure=self.secure,
                samesite=self.samesite,
            )
        raise ValueError(f"Unknown token type: {token_type!r}")

    @staticmethod
    def _set(response: Response, opts: CookieOptions, value: str) -> None:
        response.set_cookie(
            key=opts.name,
            value=value,
            max_age=opts.max_age,
            path=opts.path,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )

    @staticmethod
    def _clear(response: Response, opts: CookieOptions) -> None:
        response.delete_cookie(
            key=opts.name,
            path=opts.path,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )

    def set_auth_cookies(
        self,
        response: Response,
        access_token: str,
        refresh_token: str,
        expires_in: int,
    ) -> None:
        """Write both auth cookies; called after every login and refresh."""
        self._set(response, self.options(ACCESS, expires_in), access_token)
        self._set(response, self.options(REFRESH), refresh_token)

    def clear_all_auth_cookies(self, response: Response) -> None:
        # max_age is irrelevant for deletion; only name/path/flags must match.
        self._clear(response, self.options(ACCESS, 0))
        self._clear(response, self.options(REFRESH))
