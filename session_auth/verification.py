"""
Stateless access-token verification for resource services.
The decision is a local signature + clock check: no identity-store lookup, no network call.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from fastapi import HTTPException, Request, status

from session_auth.cookies import get_access_token
from session_auth.settings import TokenSettings

logger = logging.getLogger(__name__)

TOKEN_TYPE_ACCESS = "access"


@dataclass(frozen=True)
class Authorized:
    """Verified identity context; handlers scope every data access with account_id."""

    account_id: int
    username: str


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Rejected:
    reason: str


VerificationResult = Authorized | Unauthenticated | Rejected


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccessTokenVerifier:
    """Verifies access tokens with the shared signing secret handed in at startup."""

    def __init__(self, settings: TokenSettings, clock: Callable[[], datetime] = _utc_now):
        self._settings = settings
        self._clock = clock

    def verify(self, token: str | None) -> VerificationResult:
        if not token:
            return Unauthenticated()
        try:
            # time claims are judged below against the injected clock, not the library's
            payload = jwt.decode(
                token,
                self._settings.secret,
                algorithms=[self._settings.algorithm],
                issuer=self._settings.issuer,
                options={"verify_exp": False, "verify_iat": False, "require": ["sub", "exp", "iat", "iss"]},
            )
        except jwt.InvalidTokenError as e:
            logger.debug("Access token rejected: %s", e)
            return Rejected("invalid_signature_or_claims")

        if payload.get("typ") != TOKEN_TYPE_ACCESS:
            return Rejected("wrong_token_type")
        try:
            expires_at = int(payload["exp"])
            account_id = int(payload["sub"])
        except (TypeError, ValueError):
            return Rejected("malformed_claims")
        if self._clock().timestamp() >= expires_at:
            return Rejected("expired")

        username = payload.get("username")
        if not isinstance(username, str) or not username:
            return Rejected("malformed_claims")
        return Authorized(account_id=account_id, username=username)


def get_verifier(request: Request) -> AccessTokenVerifier:
    verifier = getattr(request.app.state, "verifier", None)
    if verifier is None:
        raise RuntimeError("AccessTokenVerifier not configured on app.state")
    return verifier


def require_identity(request: Request) -> Authorized:
    """
    Dependency: accessToken cookie -> Authorized identity.
    No token -> 401 unauthorized; bad signature, bad claims or expired -> 401 invalid_token.
    """
    result = get_verifier(request).verify(get_access_token(request))
    if isinstance(result, Authorized):
        request.state.identity = result
        return result
    if isinstance(result, Unauthenticated):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "error_description": "No access token provided"},
        )
    logger.info("Rejected access token on %s %s: %s", request.method, request.url.path, result.reason)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "invalid_token", "error_description": "Invalid or expired access token"},
    )
