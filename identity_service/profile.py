"""
GET /profile: the caller's own public account fields. Authenticated by the access cookie.
"""
from fastapi import APIRouter, Depends

from identity_service.credentials import CredentialStore
from identity_service.deps import get_store
from identity_service.errors import Unauthorized
from identity_service.models import as_utc
from session_auth.verification import Authorized, require_identity

router = APIRouter()


@router.get("/profile")
def profile(
    identity: Authorized = Depends(require_identity),
    store: CredentialStore = Depends(get_store),
):
    account = store.find_by_id(identity.account_id)
    if account is None:
        raise Unauthorized("Account no longer exists")
    return {
        **account.public_fields(),
        "created_at": as_utc(account.created_at).isoformat(),
    }
