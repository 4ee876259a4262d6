"""
Tests for AccessTokenVerifier and the require_identity dependency.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from session_auth.settings import TokenSettings
from session_auth.verification import (
    AccessTokenVerifier,
    Authorized,
    Rejected,
    Unauthenticated,
    require_identity,
)

SETTINGS = TokenSettings(secret="verification-test-secret-0123456789abcdef-0123")
NOW = datetime(2026, 3, 1, 9, 30, 0, tzinfo=timezone.utc)


def _make_token(
    *,
    secret: str = SETTINGS.secret,
    sub: str = "7",
    username: str | None = "ivy",
    issued_at: datetime = NOW,
    ttl: int = 900,
    iss: str = SETTINGS.issuer,
    typ: str = "access",
    algorithm: str = "HS256",
) -> str:
    payload = {
        "iss": iss,
        "sub": sub,
        "iat": int(issued_at.timestamp()),
        "exp": int(issued_at.timestamp()) + ttl,
        "typ": typ,
    }
    if username is not None:
        payload["username"] = username
    return jwt.encode(payload, secret, algorithm=algorithm)


def _verifier(at: datetime = NOW) -> AccessTokenVerifier:
    return AccessTokenVerifier(SETTINGS, clock=lambda: at)


def test_missing_token_is_unauthenticated():
    assert _verifier().verify(None) == Unauthenticated()
    assert _verifier().verify("") == Unauthenticated()


def test_valid_token_is_authorized():
    assert _verifier().verify(_make_token()) == Authorized(account_id=7, username="ivy")


def test_wrongly_signed_token_is_rejected():
    forged = _make_token(secret="some-other-secret-0123456789abcdef-0123456789")
    result = _verifier().verify(forged)
    assert isinstance(result, Rejected)


def test_unsigned_token_is_rejected():
    unsigned = jwt.encode(
        {"iss": SETTINGS.issuer, "sub": "7", "username": "ivy", "iat": 0, "exp": 2**31, "typ": "access"},
        None,
        algorithm="none",
    )
    assert isinstance(_verifier().verify(unsigned), Rejected)


def test_garbage_token_is_rejected():
    assert isinstance(_verifier().verify("not.a.jwt"), Rejected)
    assert isinstance(_verifier().verify("abc"), Rejected)


def test_wrong_issuer_is_rejected():
    assert isinstance(_verifier().verify(_make_token(iss="someone-else")), Rejected)


def test_non_access_token_type_is_rejected():
    assert _verifier().verify(_make_token(typ="refresh")) == Rejected("wrong_token_type")


def test_missing_username_or_bad_subject_is_rejected():
    assert _verifier().verify(_make_token(username=None)) == Rejected("malformed_claims")
    assert _verifier().verify(_make_token(sub="not-a-number")) == Rejected("malformed_claims")


def test_expiry_boundary():
    token = _make_token()
    assert isinstance(_verifier(NOW + timedelta(minutes=14, seconds=59)).verify(token), Authorized)
    assert _verifier(NOW + timedelta(minutes=15)).verify(token) == Rejected("expired")
    assert _verifier(NOW + timedelta(minutes=15, seconds=1)).verify(token) == Rejected("expired")


# --- require_identity dependency ---


@pytest.fixture
def client():
    app = FastAPI()
    app.state.verifier = _verifier()

    @app.get("/whoami")
    def whoami(identity: Authorized = Depends(require_identity)):
        return {"account_id": identity.account_id, "username": identity.username}

    return TestClient(app)


def _error(r) -> str:
    return (r.json().get("detail") or r.json()).get("error")


def test_dependency_without_cookie_returns_401(client):
    r = client.get("/whoami")
    assert r.status_code == 401
    assert _error(r) == "unauthorized"


def test_dependency_with_forged_cookie_returns_401(client):
    forged = _make_token(secret="some-other-secret-0123456789abcdef-0123456789")
    r = client.get("/whoami", headers={"Cookie": f"accessToken={forged}"})
    assert r.status_code == 401
    assert _error(r) == "invalid_token"


def test_dependency_ignores_bearer_header(client):
    r = client.get("/whoami", headers={"Authorization": f"Bearer {_make_token()}"})
    assert r.status_code == 401


def test_dependency_with_valid_cookie_sets_identity(client):
    r = client.get("/whoami", headers={"Cookie": f"accessToken={_make_token()}"})
    assert r.status_code == 200
    assert r.json() == {"account_id": 7, "username": "ivy"}
