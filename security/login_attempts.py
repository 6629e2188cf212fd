"""
Per-account failed-login counter and lock state machine.

States: Clear (no row), Counting(n) (row, no active lock), Locked(until).
A lock that has lapsed is read as Clear; nothing sweeps it in the background.

``record_failure`` is a read-increment-write retried on ``StorageConflict``,
so two concurrent failures for one account can never both observe
``max_attempts - 1`` and skip the lock.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from errors import AuditWriteError, StorageConflict, StorageError
from security.policy import LockoutPolicy
from security.records import AttemptRecord, AuditKind
from utils.client_context import ClientContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptOutcome:
    account_id: str
    failure_count: int
    locked_until: Optional[datetime]
    locked_now: bool

    @property
    def locked(self) -> bool:
        return self.locked_until is not None


class LoginAttemptTracker:
    def __init__(self, store, clock, policy: LockoutPolicy, audit):
        self._store = store
        self._clock = clock
        self._policy = policy
        self._audit = audit

    @property
    def policy(self) -> LockoutPolicy:
        return self._policy

    def _next_record(self, current: Optional[AttemptRecord], account_id: str, now: datetime):
        """Returns (new_record, locked_now) for one more failure on top of ``current``."""
        if current is None or current.lock_lapsed_at(now):
            current = AttemptRecord(account_id=account_id, failure_count=0, last_attempt_at=now)

        count = current.failure_count + 1
        if current.is_locked_at(now):
            # Straggler that passed guard() before the lock landed
            return current.evolve(failure_count=count, last_attempt_at=now), False

        if count >= self._policy.max_attempts:
            locked_until = now + self._policy.lock_duration
            return current.evolve(
                failure_count=count, last_attempt_at=now, locked_until=locked_until
            ), True

        return current.evolve(failure_count=count, last_attempt_at=now, locked_until=None), False

    def record_failure(
        self,
        account_id: str,
        now: Optional[datetime] = None,
        context: Optional[ClientContext] = None,
        detail: Optional[str] = None,
    ) -> AttemptOutcome:
        now = now or self._clock.now()

        for attempt in range(self._policy.conflict_retries + 1):
            current = self._store.get_attempt(account_id)
            record, locked_now = self._next_record(current, account_id, now)
            try:
                self._store.upsert_attempt(
                    record, expected_prior_count=current.failure_count if current else None
                )
                break
            except StorageConflict:
                logger.debug("Attempt counter race for %s (try %d)", account_id, attempt + 1)
        else:
            logger.error("Gave up updating attempt counter for %s after conflicts", account_id)
            raise StorageError(f"Could not update attempt counter for {account_id}")

        outcome = AttemptOutcome(
            account_id=account_id,
            failure_count=record.failure_count,
            locked_until=record.locked_until,
            locked_now=locked_now,
        )

        if locked_now:
            logger.warning(
                "Account locked: account_id=%s failures=%d locked_until=%s",
                account_id, record.failure_count, record.locked_until.isoformat(),
            )
        else:
            logger.info("Login failure recorded: account_id=%s failures=%d", account_id, record.failure_count)

        rows = [(AuditKind.LOGIN_FAILURE, detail)]
        if locked_now:
            rows.append((AuditKind.ACCOUNT_LOCKED, f"{record.failure_count} consecutive failures"))

        # Each row gets its own attempt; the first failure is raised at the end
        first_error = None
        for kind, note in rows:
            try:
                self._audit.record(kind, account_id, context, note, now=now)
            except AuditWriteError as exc:
                first_error = first_error or exc
        if first_error is not None:
            raise first_error
        return outcome

    def record_success(self, account_id: str, context: Optional[ClientContext] = None) -> None:
        if self._store.delete_attempt(account_id):
            logger.info("Login attempts reset after success: account_id=%s", account_id)
        self._audit.record(AuditKind.LOGIN_SUCCESS, account_id, context)

    def is_locked(self, account_id: str, now: Optional[datetime] = None) -> bool:
        return self.locked_until(account_id, now) is not None

    def locked_until(self, account_id: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """Expiry of the account's active lock, or None when it can log in."""
        now = now or self._clock.now()
        record = self._store.get_attempt(account_id)
        if record is None or not record.is_locked_at(now):
            return None
        return record.locked_until

    def get_record(self, account_id: str) -> Optional[AttemptRecord]:
        return self._store.get_attempt(account_id)

    def unlock(
        self,
        account_id: str,
        context: Optional[ClientContext] = None,
        detail: Optional[str] = None,
    ) -> bool:
        """Return the account to Clear regardless of its current state."""
        had_record = self._store.delete_attempt(account_id)
        logger.info("Account unlocked: account_id=%s", account_id)
        self._audit.record(AuditKind.ACCOUNT_UNLOCKED, account_id, context, detail)
        return had_record
