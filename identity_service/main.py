"""
Identity service: register, login, refresh-token, logout, profile.
Mounted behind the gateway at /api/auth (prefix stripped). Port 3002 by default.
"""
import logging
import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from identity_service import config
from identity_service.credentials import PasswordHasher
from identity_service.database import init_db
from identity_service.errors import register_error_handlers
from identity_service.login import router as login_router
from identity_service.logout import router as logout_router
from identity_service.profile import router as profile_router
from identity_service.refresh import router as refresh_router
from identity_service.register import router as register_router
from identity_service.tokens import TokenIssuer
from session_auth.cookies import CookiePolicy
from session_auth.settings import TokenSettings, load_token_settings
from session_auth.verification import AccessTokenVerifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    init_db()
    logger.info("Identity service started (%r)", app.state.token_settings)
    yield


def create_app(
    settings: TokenSettings | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """
    Build the app with its signing configuration fixed for the life of the process.
    `clock` overrides the issuer/verifier time source (tests).
    """
    settings = settings or load_token_settings()
    app = FastAPI(title="Identity Service", version="1.0.0", lifespan=lifespan)

    clock_kwargs = {"clock": clock} if clock is not None else {}
    app.state.token_settings = settings
    app.state.issuer = TokenIssuer(settings, **clock_kwargs)
    app.state.verifier = AccessTokenVerifier(settings, **clock_kwargs)
    app.state.password_hasher = PasswordHasher(config.BCRYPT_ROUNDS)
    app.state.cookie_policy = CookiePolicy(
        secure=config.COOKIE_SECURE,
        samesite=config.COOKIE_SAMESITE,
        trust_proxy_headers=config.TRUST_PROXY_HEADERS,
    )

    register_error_handlers(app)
    app.include_router(register_router, tags=["register"])
    app.include_router(login_router, tags=["login"])
    app.include_router(refresh_router, tags=["refresh"])
    app.include_router(logout_router, tags=["logout"])
    app.include_router(profile_router, tags=["profile"])

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "identity_service"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "identity_service.main:app",
        host="127.0.0.1",
        port=int(os.environ.get("PORT", "3002")),
        reload=True,
    )
