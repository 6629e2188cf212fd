"""
Persistence for attempt counters, recovery tokens and audit rows.

Two implementations share one contract:

* ``SqlRecoveryStore`` talks to the application database through
  Flask-SQLAlchemy and needs an app context.
* ``InMemoryRecoveryStore`` keeps everything in process, guarded by one mutex
  per key. It is only correct for a single process.

Contract highlights:

* ``upsert_attempt(record, expected_prior_count)`` is a compare-and-swap on
  ``failure_count``. ``expected_prior_count=None`` means the row must not exist
  yet. A lost race raises ``StorageConflict`` and writes nothing.
* ``insert_token`` never overwrites: a duplicate token string raises
  ``StorageConflict``.
* ``replace_token`` drops the account's outstanding tokens of that kind and
  inserts the new one as a single step; duplicates raise ``StorageConflict``
  and leave the old tokens in place.
* ``take_token`` is lookup-and-delete as one step; of two concurrent callers
  at most one gets the token back.
"""
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import StorageConflict, StorageError
from models import db
from models.audit_log import AuditLog
from models.login_attempt import LoginAttempt
from models.recovery_token import AccountUnlockToken, PasswordResetToken
from security.records import AttemptRecord, AuditEntry, RecoveryToken, TokenKind

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Storage failure during %s", action)
        raise StorageError(f"Storage unavailable during {action}") from exc


class SqlRecoveryStore:
    TOKEN_MODELS = {
        TokenKind.UNLOCK: AccountUnlockToken,
        TokenKind.RESET: PasswordResetToken,
    }

    # attempts

    def get_attempt(self, account_id: str) -> Optional[AttemptRecord]:
        with _storage_errors("get_attempt"):
            row = LoginAttempt.query.filter_by(account_id=account_id).first()
            return row.to_record() if row else None

    def upsert_attempt(self, record: AttemptRecord, expected_prior_count: Optional[int]) -> None:
        with _storage_errors("upsert_attempt"):
            if expected_prior_count is None:
                db.session.add(LoginAttempt.from_record(record))
                try:
                    db.session.commit()
                except IntegrityError as exc:
                    db.session.rollback()
                    raise StorageConflict(
                        f"Attempt row for {record.account_id} already exists"
                    ) from exc
                return

            result = db.session.execute(
                sa.update(LoginAttempt)
                .where(
                    LoginAttempt.account_id == record.account_id,
                    LoginAttempt.failure_count == expected_prior_count,
                )
                .values(
                    failure_count=record.failure_count,
                    last_attempt_at=record.last_attempt_at,
                    locked_until=record.locked_until,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.session.rollback()
                raise StorageConflict(
                    f"Attempt row for {record.account_id} changed concurrently"
                )
            db.session.commit()

    def delete_attempt(self, account_id: str) -> bool:
        with _storage_errors("delete_attempt"):
            result = db.session.execute(
                sa.delete(LoginAttempt)
                .where(LoginAttempt.account_id == account_id)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount > 0

    # tokens

    def insert_token(self, kind: TokenKind, token: RecoveryToken) -> None:
        model = self.TOKEN_MODELS[kind]
        with _storage_errors("insert_token"):
            db.session.add(model.from_record(token))
            try:
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                raise StorageConflict("Duplicate recovery token") from exc

    def replace_token(self, kind: TokenKind, token: RecoveryToken) -> int:
        model = self.TOKEN_MODELS[kind]
        with _storage_errors("replace_token"):
            result = db.session.execute(
                sa.delete(model)
                .where(model.account_id == token.account_id)
                .execution_options(synchronize_session=False)
            )
            db.session.add(model.from_record(token))
            try:
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                raise StorageConflict("Duplicate recovery token") from exc
            return result.rowcount

    def find_token(self, kind: TokenKind, token: str) -> Optional[RecoveryToken]:
        model = self.TOKEN_MODELS[kind]
        with _storage_errors("find_token"):
            row = model.query.filter_by(token=token).first()
            return row.to_record() if row else None

    def take_token(self, kind: TokenKind, token: str) -> Optional[RecoveryToken]:
        model = self.TOKEN_MODELS[kind]
        with _storage_errors("take_token"):
            row = model.query.filter_by(token=token).first()
            if row is None:
                db.session.rollback()
                return None
            record = row.to_record()

            # Whoever deletes the row owns the token
            result = db.session.execute(
                sa.delete(model)
                .where(model.token == token)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            if result.rowcount != 1:
                return None
            return record

    def delete_tokens_for_account(self, kind: TokenKind, account_id: str) -> int:
        model = self.TOKEN_MODELS[kind]
        with _storage_errors("delete_tokens_for_account"):
            result = db.session.execute(
                sa.delete(model)
                .where(model.account_id == account_id)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount

    def delete_expired_tokens(self, kind: TokenKind, now: datetime) -> int:
        model = self.TOKEN_MODELS[kind]
        with _storage_errors("delete_expired_tokens"):
            result = db.session.execute(
                sa.delete(model)
                .where(model.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount

    # audit

    def append_audit(self, entry: AuditEntry) -> None:
        with _storage_errors("append_audit"):
            db.session.add(AuditLog.from_entry(entry))
            db.session.commit()


class InMemoryRecoveryStore:
    def __init__(self):
        self._attempts: dict[str, AttemptRecord] = {}
        self._tokens: dict[TokenKind, dict[str, RecoveryToken]] = defaultdict(dict)
        self._audit: list[AuditEntry] = []

        self._registry_lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        self._token_lock = threading.Lock()
        self._audit_lock = threading.Lock()

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(account_id)
            if lock is None:
                lock = self._key_locks[account_id] = threading.Lock()
            return lock

    # attempts

    def get_attempt(self, account_id: str) -> Optional[AttemptRecord]:
        with self._lock_for(account_id):
            return self._attempts.get(account_id)

    def upsert_attempt(self, record: AttemptRecord, expected_prior_count: Optional[int]) -> None:
        with self._lock_for(record.account_id):
            current = self._attempts.get(record.account_id)
            current_count = current.failure_count if current else None
            if current_count != expected_prior_count:
                raise StorageConflict(
                    f"Attempt row for {record.account_id} changed concurrently"
                )
            self._attempts[record.account_id] = record

    def delete_attempt(self, account_id: str) -> bool:
        with self._lock_for(account_id):
            return self._attempts.pop(account_id, None) is not None

    # tokens

    def insert_token(self, kind: TokenKind, token: RecoveryToken) -> None:
        with self._token_lock:
            table = self._tokens[kind]
            if token.token in table:
                raise StorageConflict("Duplicate recovery token")
            table[token.token] = token

    def replace_token(self, kind: TokenKind, token: RecoveryToken) -> int:
        with self._token_lock:
            table = self._tokens[kind]
            if token.token in table:
                raise StorageConflict("Duplicate recovery token")
            doomed = [t for t, row in table.items() if row.account_id == token.account_id]
            for t in doomed:
                del table[t]
            table[token.token] = token
            return len(doomed)

    def find_token(self, kind: TokenKind, token: str) -> Optional[RecoveryToken]:
        with self._token_lock:
            return self._tokens[kind].get(token)

    def take_token(self, kind: TokenKind, token: str) -> Optional[RecoveryToken]:
        with self._token_lock:
            return self._tokens[kind].pop(token, None)

    def delete_tokens_for_account(self, kind: TokenKind, account_id: str) -> int:
        with self._token_lock:
            table = self._tokens[kind]
            doomed = [t for t, row in table.items() if row.account_id == account_id]
            for t in doomed:
                del table[t]
            return len(doomed)

    def delete_expired_tokens(self, kind: TokenKind, now: datetime) -> int:
        with self._token_lock:
            table = self._tokens[kind]
            doomed = [t for t, row in table.items() if row.is_expired_at(now)]
            for t in doomed:
                del table[t]
            return len(doomed)

    # audit

    def append_audit(self, entry: AuditEntry) -> None:
        with self._audit_lock:
            self._audit.append(entry)

    def audit_entries(self, account_id: Optional[str] = None) -> list[AuditEntry]:
        with self._audit_lock:
            if account_id is None:
                return list(self._audit)
            return [e for e in self._audit if e.account_id == account_id]
