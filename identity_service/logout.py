"""
POST /logout: forget the refresh token server-side if it matches, and always clear both cookies.
Always 200: an unknown, expired or missing token, a malformed body, or a storage error
still ends the browser session.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from identity_service.audit import EVENT_LOGOUT, get_client_ip, log_audit
from identity_service.credentials import CredentialStore
from identity_service.database import get_db
from identity_service.deps import get_cookie_policy, get_store
from identity_service.errors import StorageFailure
from session_auth.cookies import CookiePolicy, clear_session_cookies, get_refresh_token

logger = logging.getLogger(__name__)
router = APIRouter()


async def refresh_token_from_body(request: Request) -> str | None:
    """{"refreshToken": "..."} from an optional JSON body. Anything else counts as no token."""
    try:
        data = await request.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    value = data.get("refreshToken")
    if not isinstance(value, str):
        return None
    return value.strip() or None


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    body_token: str | None = Depends(refresh_token_from_body),
    store: CredentialStore = Depends(get_store),
    policy: CookiePolicy = Depends(get_cookie_policy),
    db: Session = Depends(get_db),
):
    """Refresh token from the cookie, or from the JSON body when no cookie is sent."""
    token = get_refresh_token(request) or body_token

    if token:
        try:
            if store.clear_refresh_token(token):
                log_audit(db, EVENT_LOGOUT, ip=get_client_ip(request))
                logger.info("Logout cleared server-side refresh token")
        except StorageFailure:
            logger.warning("Logout could not clear the server-side refresh token")
    else:
        logger.debug("Logout without a refresh token")

    clear_session_cookies(response, request, policy)
    return {"status": "ok"}
