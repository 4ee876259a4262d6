"""
POST /login: email + password -> access and refresh cookies.
Unknown email and wrong password produce the same 400 invalid_credentials response.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from identity_service import config
from identity_service.audit import (
    EVENT_LOGIN_FAIL,
    EVENT_LOGIN_OK,
    OUTCOME_FAIL,
    get_client_ip,
    log_audit,
)
from identity_service.credentials import CredentialStore
from identity_service.database import get_db
from identity_service.deps import get_cookie_policy, get_issuer, get_store, required_field
from identity_service.errors import InvalidCredentials
from identity_service.rate_limit import enforce
from identity_service.tokens import TokenIssuer
from session_auth.cookies import CookiePolicy, set_session_cookies

logger = logging.getLogger(__name__)
router = APIRouter()


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    store: CredentialStore = Depends(get_store),
    issuer: TokenIssuer = Depends(get_issuer),
    policy: CookiePolicy = Depends(get_cookie_policy),
    db: Session = Depends(get_db),
):
    """
    Tokens travel only in the Set-Cookie headers; the body is an opaque success marker.
    Each login replaces the account's previous refresh token.
    """
    email = required_field(payload.email)
    password = required_field(payload.password, strip=False)

    ip = get_client_ip(request)
    enforce(f"login:{ip or 'unknown'}", config.RATE_LIMIT_LOGIN_PER_MINUTE)

    account = store.authenticate(email, password)
    if account is None:
        log_audit(db, EVENT_LOGIN_FAIL, ip=ip, outcome=OUTCOME_FAIL)
        logger.info("Login failed from ip=%s", ip)
        raise InvalidCredentials()

    tokens = issuer.start_session(store, account)
    set_session_cookies(
        response,
        request,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        settings=issuer.settings,
        policy=policy,
    )
    log_audit(db, EVENT_LOGIN_OK, account_id=account.id, ip=ip)
    logger.info("Login ok for account_id=%s", account.id)
    return {"status": "ok", "expires_in": issuer.settings.access_token_ttl}
