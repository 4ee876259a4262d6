"""
Credential store: accounts, bcrypt password hashes, and the single current refresh token per account.
Storage errors are logged here and re-raised as StorageFailure; driver details never reach the client.
"""
import hashlib
import logging
import secrets
from contextlib import contextmanager
from datetime import datetime

import bcrypt
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from identity_service.config import BCRYPT_ROUNDS
from identity_service.errors import DuplicateIdentity, StorageFailure
from identity_service.models import Account, as_utc

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def hash_token(token: str) -> str:
    """Lookup key for a refresh token. The raw value only lives in the client's cookie."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordHasher:
    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(self._encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(self._encode(password), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False

    def burn(self, password: str) -> None:
        """Spend one verification's worth of work so unknown-account logins take as long as known ones."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(secrets.token_bytes(16), bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(self._encode(password), self._dummy_hash)


class CredentialStore:
    def __init__(self, db: Session, hasher: PasswordHasher):
        self._db = db
        self._hasher = hasher

    @contextmanager
    def _storage_errors(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception("Credential store %s failed", operation)
            raise StorageFailure() from e

    def create_account(self, username: str, email: str, password: str) -> Account:
        """Insert a new account; the password is hashed before it touches the session."""
        account = Account(username=username, email=email, password_hash=self._hasher.hash(password))
        with self._storage_errors("create_account"):
            self._db.add(account)
            try:
                self._db.commit()
            except IntegrityError as e:
                self._db.rollback()
                logger.info("Registration rejected: username or email already taken")
                raise DuplicateIdentity() from e
            self._db.refresh(account)
        return account

    def find_by_email(self, email: str) -> Account | None:
        with self._storage_errors("find_by_email"):
            return self._db.query(Account).filter(Account.email == email).first()

    def find_by_id(self, account_id: int) -> Account | None:
        with self._storage_errors("find_by_id"):
            return self._db.get(Account, account_id)

    def find_by_refresh_token(self, token: str, now: datetime) -> Account | None:
        """Account whose current, unexpired refresh token is `token`."""
        with self._storage_errors("find_by_refresh_token"):
            return (
                self._db.query(Account)
                .filter(
                    Account.refresh_token_hash == hash_token(token),
                    Account.refresh_token_expires_at > as_utc(now),
                )
                .first()
            )

    def authenticate(self, email: str, password: str) -> Account | None:
        """Account if email exists and password matches, else None (both cases cost one bcrypt check)."""
        account = self.find_by_email(email)
        if account is None:
            self._hasher.burn(password)
            return None
        if not self._hasher.verify(password, account.password_hash):
            return None
        return account

    def set_refresh_token(self, account_id: int, token: str, expires_at: datetime) -> None:
        """Replace the account's refresh token in a single UPDATE; any previous value stops matching."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(refresh_token_hash=hash_token(token), refresh_token_expires_at=as_utc(expires_at))
            .execution_options(synchronize_session=False)
        )
        with self._storage_errors("set_refresh_token"):
            self._db.execute(stmt)
            self._db.commit()

    def rotate_refresh_token(
        self,
        presented: str,
        new_token: str,
        new_expires_at: datetime,
        now: datetime,
    ) -> Account | None:
        """
        Conditional update: swap `presented` for `new_token` only if `presented` is the current,
        unexpired value. Of two concurrent callers with the same token, exactly one matches the row;
        the other gets None.
        """
        new_hash = hash_token(new_token)
        stmt = (
            update(Account)
            .where(
                Account.refresh_token_hash == hash_token(presented),
                Account.refresh_token_expires_at > as_utc(now),
            )
            .values(refresh_token_hash=new_hash, refresh_token_expires_at=as_utc(new_expires_at))
            .returning(Account.id)
            .execution_options(synchronize_session=False)
        )
        with self._storage_errors("rotate_refresh_token"):
            account_id = self._db.execute(stmt).scalar_one_or_none()
            if account_id is None:
                self._db.rollback()
                return None
            self._db.commit()
            # by id: a later rotation of the same row must not hide this one
            return self._db.get(Account, account_id)

    def clear_refresh_token(self, token: str) -> bool:
        """Forget the refresh token if it is some account's current one. True when a row matched."""
        stmt = (
            update(Account)
            .where(Account.refresh_token_hash == hash_token(token))
            .values(refresh_token_hash=None, refresh_token_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        with self._storage_errors("clear_refresh_token"):
            result = self._db.execute(stmt)
            self._db.commit()
            return result.rowcount == 1
