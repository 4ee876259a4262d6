"""
Access/refresh token configuration shared by the identity service and every resource service.
Loaded once at startup and passed to each app factory; the signing secret comes from env only.
"""
import os
from collections.abc import Mapping
from dataclasses import dataclass

# HS256 keys shorter than the digest size are rejected at startup
MIN_SECRET_BYTES = 32

DEFAULT_ISSUER = "identity-service"
DEFAULT_ACCESS_TOKEN_TTL = 15 * 60
DEFAULT_REFRESH_TOKEN_TTL = 7 * 24 * 60 * 60


@dataclass(frozen=True)
class TokenSettings:
    secret: str
    issuer: str = DEFAULT_ISSUER
    algorithm: str = "HS256"
    access_token_ttl: int = DEFAULT_ACCESS_TOKEN_TTL
    refresh_token_ttl: int = DEFAULT_REFRESH_TOKEN_TTL

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        return (
            f"TokenSettings(issuer={self.issuer!r}, algorithm={self.algorithm!r}, "
            f"access_token_ttl={self.access_token_ttl}, refresh_token_ttl={self.refresh_token_ttl})"
        )


def load_token_settings(environ: Mapping[str, str] | None = None) -> TokenSettings:
    """
    Build TokenSettings from AUTH_JWT_SECRET, AUTH_JWT_ISSUER, AUTH_ACCESS_TOKEN_TTL, AUTH_REFRESH_TOKEN_TTL.
    Raises RuntimeError when the secret is missing or too short.
    """
    env = os.environ if environ is None else environ
    secret = env.get("AUTH_JWT_SECRET", "")
    if not secret:
        raise RuntimeError("AUTH_JWT_SECRET is not set; refusing to start without a signing secret")
    if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
        raise RuntimeError(f"AUTH_JWT_SECRET must be at least {MIN_SECRET_BYTES} bytes")
    return TokenSettings(
        secret=secret,
        issuer=env.get("AUTH_JWT_ISSUER", DEFAULT_ISSUER).strip() or DEFAULT_ISSUER,
        access_token_ttl=int(env.get("AUTH_ACCESS_TOKEN_TTL", str(DEFAULT_ACCESS_TOKEN_TTL))),
        refresh_token_ttl=int(env.get("AUTH_REFRESH_TOKEN_TTL", str(DEFAULT_REFRESH_TOKEN_TTL))),
    )
