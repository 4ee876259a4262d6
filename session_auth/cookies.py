"""
Session cookie transport: access and refresh tokens travel as two HttpOnly, same-site cookies.
Values are opaque here; this module only decides names, lifetimes and attributes.
"""
from dataclasses import dataclass
from typing import Literal

from starlette.requests import Request
from starlette.responses import Response

from session_auth.settings import TokenSettings

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"
COOKIE_PATH = "/"

SECURE_AUTO = "auto"
SECURE_ALWAYS = "always"
SECURE_NEVER = "never"


@dataclass(frozen=True)
class CookiePolicy:
    """
    secure: "auto" marks cookies Secure when the public origin is https,
    "always"/"never" force it. trust_proxy_headers lets X-Forwarded-Proto decide the scheme.
    """

    secure: str = SECURE_AUTO
    samesite: Literal["strict", "lax"] = "strict"
    trust_proxy_headers: bool = True

    def is_secure(self, request: Request) -> bool:
        if self.secure == SECURE_ALWAYS:
            return True
        if self.secure == SECURE_NEVER:
            return False
        if self.trust_proxy_headers:
            forwarded = request.headers.get("x-forwarded-proto")
            if forwarded:
                return forwarded.split(",")[0].strip().lower() == "https"
        return request.url.scheme == "https"


def get_access_token(request: Request) -> str | None:
    value = request.cookies.get(ACCESS_TOKEN_COOKIE)
    return value or None


def get_refresh_token(request: Request) -> str | None:
    value = request.cookies.get(REFRESH_TOKEN_COOKIE)
    return value or None


def set_session_cookies(
    response: Response,
    request: Request,
    *,
    access_token: str,
    refresh_token: str,
    settings: TokenSettings,
    policy: CookiePolicy,
) -> None:
    """Set both cookies; each max-age matches its token lifetime."""
    secure = policy.is_secure(request)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=settings.access_token_ttl,
        path=COOKIE_PATH,
        secure=secure,
        httponly=True,
        samesite=policy.samesite,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        refresh_token,
        max_age=settings.refresh_token_ttl,
        path=COOKIE_PATH,
        secure=secure,
        httponly=True,
        samesite=policy.samesite,
    )


def clear_session_cookies(response: Response, request: Request, policy: CookiePolicy) -> None:
    """Expire both cookies immediately, with the same attributes they were set with."""
    secure = policy.is_secure(request)
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            name,
            path=COOKIE_PATH,
            secure=secure,
            httponly=True,
            samesite=policy.samesite,
        )
