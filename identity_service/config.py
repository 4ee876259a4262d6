"""
Identity service configuration. Values from env with development defaults.
The access-token signing secret is not read here; see session_auth.settings.
"""
import os

# SQLite for development; any SQLAlchemy URL works (e.g. postgresql+psycopg://...)
DATABASE_URL = os.environ.get("AUTH_DATABASE_URL", "sqlite:///./identity_service.db")

# bcrypt cost factor; 12 keeps a verification in the tens of milliseconds
BCRYPT_ROUNDS = int(os.environ.get("AUTH_BCRYPT_ROUNDS", "12"))

# Cookie attributes: "auto" follows the public scheme (X-Forwarded-Proto behind the gateway)
COOKIE_SECURE = os.environ.get("AUTH_COOKIE_SECURE", "auto").strip().lower()
COOKIE_SAMESITE = os.environ.get("AUTH_COOKIE_SAMESITE", "strict").strip().lower()
if COOKIE_SAMESITE not in {"strict", "lax"}:
    COOKIE_SAMESITE = "strict"

# The gateway forwards client IP and scheme; disable when the service is reachable directly
TRUST_PROXY_HEADERS = os.environ.get("AUTH_TRUST_PROXY_HEADERS", "true").strip().lower() in {"1", "true", "yes"}

# Rate limiting: per-IP, per minute. 0 disables.
RATE_LIMIT_LOGIN_PER_MINUTE = int(os.environ.get("AUTH_RATE_LIMIT_LOGIN_PER_MINUTE", "20"))
RATE_LIMIT_REGISTER_PER_MINUTE = int(os.environ.get("AUTH_RATE_LIMIT_REGISTER_PER_MINUTE", "10"))
