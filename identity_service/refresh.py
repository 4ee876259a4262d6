"""
POST /refresh-token: rotate the refresh cookie and mint a new access token.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from identity_service.audit import (
    EVENT_REFRESH_FAIL,
    EVENT_TOKEN_REFRESHED,
    OUTCOME_FAIL,
    get_client_ip,
    log_audit,
)
from identity_service.credentials import CredentialStore
from identity_service.database import get_db
from identity_service.deps import get_cookie_policy, get_issuer, get_store
from identity_service.errors import InvalidSession, Unauthorized
from identity_service.tokens import TokenIssuer
from session_auth.cookies import CookiePolicy, get_refresh_token, set_session_cookies

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/refresh-token")
def refresh_token(
    request: Request,
    response: Response,
    store: CredentialStore = Depends(get_store),
    issuer: TokenIssuer = Depends(get_issuer),
    policy: CookiePolicy = Depends(get_cookie_policy),
    db: Session = Depends(get_db),
):
    """
    401 unauthorized without a refresh cookie; 401 invalid_session when the cookie is not the
    account's current unexpired token (including one that was just rotated away).
    """
    presented = get_refresh_token(request)
    if not presented:
        raise Unauthorized()

    ip = get_client_ip(request)
    try:
        tokens = issuer.rotate_session(store, presented)
    except InvalidSession:
        log_audit(db, EVENT_REFRESH_FAIL, ip=ip, outcome=OUTCOME_FAIL)
        logger.warning("Refresh rejected from ip=%s: token unknown, expired or superseded", ip)
        raise

    set_session_cookies(
        response,
        request,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        settings=issuer.settings,
        policy=policy,
    )
    log_audit(db, EVENT_TOKEN_REFRESHED, account_id=tokens.account.id, ip=ip)
    return {"status": "ok", "expires_in": issuer.settings.access_token_ttl}
