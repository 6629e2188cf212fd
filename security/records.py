"""
Plain value types passed between the lockout/recovery services and their store.

Stores hand these out instead of ORM rows so the services never depend on a
live database session.
"""
import enum
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


class TokenKind(str, enum.Enum):
    UNLOCK = "UNLOCK"
    RESET = "RESET"


class AuditKind(str, enum.Enum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    LOGIN_BLOCKED = "LOGIN_BLOCKED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_UNLOCKED = "ACCOUNT_UNLOCKED"
    LOGOUT = "LOGOUT"
    UNLOCK_REQUESTED = "UNLOCK_REQUESTED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"


@dataclass(frozen=True)
class AttemptRecord:
    account_id: str
    failure_count: int
    last_attempt_at: datetime
    locked_until: Optional[datetime] = None

    def is_locked_at(self, now: datetime) -> bool:
        return self.locked_until is not None and now < self.locked_until

    def lock_lapsed_at(self, now: datetime) -> bool:
        return self.locked_until is not None and now >= self.locked_until

    def evolve(self, **changes) -> "AttemptRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class RecoveryToken:
    kind: TokenKind
    account_id: str
    token: str
    issued_at: datetime
    expires_at: datetime

    def is_expired_at(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class AuditEntry:
    account_id: str
    timestamp: datetime
    kind: AuditKind
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    detail: Optional[str] = None
