"""
POST /register: create an account. Returns public fields only, never the password hash.
"""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from identity_service import config
from identity_service.audit import EVENT_REGISTER, get_client_ip, log_audit
from identity_service.credentials import CredentialStore
from identity_service.database import get_db
from identity_service.deps import get_store, required_field
from identity_service.rate_limit import enforce

logger = logging.getLogger(__name__)
router = APIRouter()


class RegisterRequest(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None


@router.post("/register", status_code=201)
def register(
    payload: RegisterRequest,
    request: Request,
    store: CredentialStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """400 invalid_input on any missing/empty field; 400 duplicate_identity on a taken username or email."""
    username = required_field(payload.username)
    email = required_field(payload.email)
    password = required_field(payload.password, strip=False)

    ip = get_client_ip(request)
    enforce(f"register:{ip or 'unknown'}", config.RATE_LIMIT_REGISTER_PER_MINUTE)

    account = store.create_account(username, email, password)
    log_audit(db, EVENT_REGISTER, account_id=account.id, ip=ip)
    logger.info("Registered account_id=%s", account.id)
    return account.public_fields()
