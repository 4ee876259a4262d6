"""
Token issuer: signed short-lived access tokens, opaque long-lived refresh tokens, and refresh rotation.
Every login and every refresh writes a brand-new refresh token over the previous one.
"""
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from identity_service.credentials import CredentialStore
from identity_service.errors import InvalidSession
from identity_service.models import Account
from session_auth.settings import TokenSettings
from session_auth.verification import TOKEN_TYPE_ACCESS

logger = logging.getLogger(__name__)

# 48 random bytes -> 384 bits, rendered as 64 url-safe characters
REFRESH_TOKEN_BYTES = 48


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedTokens:
    account: Account
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


class TokenIssuer:
    def __init__(self, settings: TokenSettings, clock: Callable[[], datetime] = _utc_now):
        self._settings = settings
        self._clock = clock

    @property
    def settings(self) -> TokenSettings:
        return self._settings

    def now(self) -> datetime:
        return self._clock()

    def issue_access_token(self, account: Account) -> str:
        """HS256 JWT asserting {sub, username, iat, exp}; exp = iat + access TTL."""
        issued_at = int(self._clock().timestamp())
        payload = {
            "iss": self._settings.issuer,
            "sub": str(account.id),
            "username": account.username,
            "iat": issued_at,
            "exp": issued_at + self._settings.access_token_ttl,
            "typ": TOKEN_TYPE_ACCESS,
        }
        token = jwt.encode(payload, self._settings.secret, algorithm=self._settings.algorithm)
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def issue_refresh_token(self) -> tuple[str, datetime]:
        """Opaque random value unrelated to the access token, and its expiry."""
        value = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
        expires_at = self._clock() + timedelta(seconds=self._settings.refresh_token_ttl)
        return value, expires_at

    def start_session(self, store: CredentialStore, account: Account) -> IssuedTokens:
        """Login: mint both tokens; the new refresh token replaces whatever the account held."""
        access_token = self.issue_access_token(account)
        refresh_token, refresh_expires_at = self.issue_refresh_token()
        store.set_refresh_token(account.id, refresh_token, refresh_expires_at)
        return IssuedTokens(
            account=account,
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_expires_at=refresh_expires_at,
        )

    def rotate_session(self, store: CredentialStore, presented: str) -> IssuedTokens:
        """
        Refresh: validate and replace `presented` in one conditional update.
        Unknown, expired or already-rotated tokens all fail with InvalidSession; no grace window.
        """
        refresh_token, refresh_expires_at = self.issue_refresh_token()
        account = store.rotate_refresh_token(
            presented,
            refresh_token,
            refresh_expires_at,
            now=self._clock(),
        )
        if account is None:
            raise InvalidSession()
        logger.info("Refresh token rotated for account_id=%s", account.id)
        return IssuedTokens(
            account=account,
            access_token=self.issue_access_token(account),
            refresh_token=refresh_token,
            refresh_expires_at=refresh_expires_at,
        )
