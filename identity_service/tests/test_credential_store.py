"""
Tests for CredentialStore: hashing, duplicate detection, single-row refresh state, conditional rotation.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from identity_service.credentials import CredentialStore, PasswordHasher, hash_token
from identity_service.database import SessionLocal
from identity_service.errors import DuplicateIdentity, InvalidSession, StorageFailure
from identity_service.models import Account, Base
from identity_service.tokens import TokenIssuer
from session_auth.settings import TokenSettings

SETTINGS = TokenSettings(secret="store-test-secret-0123456789abcdef-0123456789")


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return CredentialStore(db, PasswordHasher(rounds=4))


def test_password_is_hashed_not_stored_plain(store, db):
    account = store.create_account("dave", "dave@x.com", "s3cret-pass")
    row = db.get(Account, account.id)
    assert row.password_hash != "s3cret-pass"
    assert row.password_hash.startswith("$2")
    assert "s3cret-pass" not in row.password_hash


def test_authenticate_checks_password(store):
    store.create_account("dave", "dave@x.com", "s3cret-pass")
    assert store.authenticate("dave@x.com", "s3cret-pass") is not None
    assert store.authenticate("dave@x.com", "wrong") is None
    assert store.authenticate("nobody@x.com", "s3cret-pass") is None


def test_long_passwords_verify_consistently(store):
    password = "p" * 100
    store.create_account("long", "long@x.com", password)
    assert store.authenticate("long@x.com", password) is not None


def test_duplicate_username_raises_duplicate_identity(store):
    store.create_account("dave", "dave@x.com", "pw")
    with pytest.raises(DuplicateIdentity):
        store.create_account("dave", "other@x.com", "pw")
    # session still usable after the rollback
    assert store.find_by_email("dave@x.com") is not None


def test_duplicate_email_raises_duplicate_identity(store):
    store.create_account("dave", "dave@x.com", "pw")
    with pytest.raises(DuplicateIdentity):
        store.create_account("dave2", "dave@x.com", "pw")


def test_refresh_token_stored_as_hash(store, db, fake_clock):
    account = store.create_account("dave", "dave@x.com", "pw")
    expires = fake_clock() + timedelta(days=7)
    store.set_refresh_token(account.id, "raw-token-value", expires)
    db.expire_all()
    row = db.get(Account, account.id)
    assert row.refresh_token_hash == hash_token("raw-token-value")
    assert row.refresh_token_hash != "raw-token-value"
    assert store.find_by_refresh_token("raw-token-value", fake_clock()).id == account.id


def test_set_refresh_token_replaces_previous_value(store, fake_clock):
    account = store.create_account("dave", "dave@x.com", "pw")
    expires = fake_clock() + timedelta(days=7)
    store.set_refresh_token(account.id, "first", expires)
    store.set_refresh_token(account.id, "second", expires)
    assert store.find_by_refresh_token("first", fake_clock()) is None
    assert store.find_by_refresh_token("second", fake_clock()) is not None


def test_find_by_refresh_token_ignores_expired(store, fake_clock):
    account = store.create_account("dave", "dave@x.com", "pw")
    store.set_refresh_token(account.id, "tok", fake_clock() + timedelta(seconds=10))
    assert store.find_by_refresh_token("tok", fake_clock() + timedelta(seconds=11)) is None


def test_rotate_refresh_token_only_matches_current_value(store, fake_clock):
    account = store.create_account("dave", "dave@x.com", "pw")
    now = fake_clock()
    store.set_refresh_token(account.id, "old", now + timedelta(days=7))

    rotated = store.rotate_refresh_token("old", "new", now + timedelta(days=7), now=now)
    assert rotated is not None
    assert rotated.id == account.id

    # the same presented value cannot rotate twice
    assert store.rotate_refresh_token("old", "newer", now + timedelta(days=7), now=now) is None
    assert store.find_by_refresh_token("new", now) is not None


def test_rotation_result_survives_a_later_write_to_the_row(store, db, fake_clock, monkeypatch):
    account = store.create_account("dave", "dave@x.com", "pw")
    now = fake_clock()
    store.set_refresh_token(account.id, "old", now + timedelta(days=7))

    commit = db.commit

    def commit_then_rotate_elsewhere():
        commit()
        other = SessionLocal()
        try:
            CredentialStore(other, PasswordHasher(rounds=4)).set_refresh_token(
                account.id, "from-another-login", now + timedelta(days=7)
            )
        finally:
            other.close()

    monkeypatch.setattr(db, "commit", commit_then_rotate_elsewhere)
    rotated = store.rotate_refresh_token("old", "new", now + timedelta(days=7), now=now)
    assert rotated is not None
    assert rotated.id == account.id


def test_rotate_refresh_token_rejects_expired_value(store, fake_clock):
    account = store.create_account("dave", "dave@x.com", "pw")
    now = fake_clock()
    store.set_refresh_token(account.id, "old", now + timedelta(seconds=1))
    later = now + timedelta(seconds=2)
    assert store.rotate_refresh_token("old", "new", later + timedelta(days=7), now=later) is None


def test_clear_refresh_token(store, fake_clock):
    account = store.create_account("dave", "dave@x.com", "pw")
    store.set_refresh_token(account.id, "tok", fake_clock() + timedelta(days=7))
    assert store.clear_refresh_token("tok") is True
    assert store.clear_refresh_token("tok") is False
    assert store.find_by_refresh_token("tok", fake_clock()) is None


def test_storage_errors_become_storage_failure(db, monkeypatch):
    store = CredentialStore(db, PasswordHasher(rounds=4))

    def boom(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "query", boom)
    with pytest.raises(StorageFailure) as exc_info:
        store.find_by_email("x@x.com")
    assert "connection lost" not in str(exc_info.value)


def test_concurrent_refresh_exactly_one_wins(tmp_path):
    """Two racers presenting the same refresh token: one rotates, the other gets InvalidSession."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    make_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    hasher = PasswordHasher(rounds=4)
    issuer = TokenIssuer(SETTINGS)

    with make_session() as db:
        store = CredentialStore(db, hasher)
        account = store.create_account("racer", "racer@x.com", "pw123456")
        presented = issuer.start_session(store, account).refresh_token

    barrier = threading.Barrier(2)

    def attempt(_):
        with make_session() as db:
            racer_store = CredentialStore(db, hasher)
            barrier.wait()
            try:
                return issuer.rotate_session(racer_store, presented).refresh_token
            except InvalidSession:
                return None

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, range(2)))

    winners = [r for r in results if r is not None]
    assert len(winners) == 1

    with make_session() as db:
        row = db.query(Account).filter(Account.username == "racer").one()
        assert row.refresh_token_hash == hash_token(winners[0])
    engine.dispose()
