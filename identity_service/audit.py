"""
Audit trail for security-relevant identity events. No tokens, passwords or emails are recorded.
"""
import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from identity_service.config import TRUST_PROXY_HEADERS
from identity_service.errors import StorageFailure
from identity_service.models import AuditLog

logger = logging.getLogger(__name__)

EVENT_REGISTER = "register"
EVENT_LOGIN_OK = "login_ok"
EVENT_LOGIN_FAIL = "login_fail"
EVENT_TOKEN_REFRESHED = "token_refreshed"
EVENT_REFRESH_FAIL = "refresh_fail"
EVENT_LOGOUT = "logout"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"


def get_client_ip(request: Request | None, trust_proxy_headers: bool = TRUST_PROXY_HEADERS) -> str | None:
    """
    Client IP: the last X-Forwarded-For hop (appended by the gateway) when proxy headers are trusted,
    else the socket peer. Earlier hops are client-supplied and ignored.
    """
    if request is None:
        return None
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            last = forwarded.split(",")[-1].strip()
            if last:
                return last[:64]
    if request.client is None:
        return None
    return getattr(request.client, "host", None)


def log_audit(
    db: Session,
    event_type: str,
    *,
    account_id: int | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
) -> None:
    """Append one audit record."""
    try:
        db.add(
            AuditLog(
                event_type=event_type,
                account_id=account_id,
                ip=ip,
                outcome=outcome,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Audit write failed for event_type=%s", event_type)
        raise StorageFailure() from e
