"""
FastAPI dependencies: per-request credential store, plus the startup-time objects kept on app.state.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from identity_service.credentials import CredentialStore, PasswordHasher
from identity_service.database import get_db
from identity_service.errors import InvalidInput
from identity_service.tokens import TokenIssuer
from session_auth.cookies import CookiePolicy


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_store(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> CredentialStore:
    return CredentialStore(db, hasher)


def get_issuer(request: Request) -> TokenIssuer:
    return request.app.state.issuer


def get_cookie_policy(request: Request) -> CookiePolicy:
    return request.app.state.cookie_policy


def required_field(value: str | None, *, strip: bool = True) -> str:
    """Non-empty string or InvalidInput."""
    if value is None:
        raise InvalidInput()
    cleaned = value.strip() if strip else value
    if not cleaned:
        raise InvalidInput()
    return cleaned
