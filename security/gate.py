import logging
import math
from datetime import datetime
from typing import Optional

from errors import AccountLocked
from security.login_attempts import AttemptOutcome, LoginAttemptTracker
from security.records import AuditKind
from utils.client_context import ClientContext

logger = logging.getLogger(__name__)


class AuthenticationGate:
    """Lockout checks wrapped around the credential comparison.

    Call ``guard`` before comparing credentials and stop if it raises.
    Call ``report`` once the outcome is known.
    """

    def __init__(self, tracker: LoginAttemptTracker, audit, clock):
        self._tracker = tracker
        self._audit = audit
        self._clock = clock

    def guard(
        self,
        account_id: str,
        now: Optional[datetime] = None,
        context: Optional[ClientContext] = None,
    ) -> None:
        now = now or self._clock.now()
        locked_until = self._tracker.locked_until(account_id, now)
        if locked_until is None:
            return

        seconds = max(1, math.ceil((locked_until - now).total_seconds()))
        logger.warning("Login blocked for locked account %s (%ds left)", account_id, seconds)
        self._audit.record(
            AuditKind.LOGIN_BLOCKED, account_id, context, "Account is locked", now=now
        )
        raise AccountLocked(locked_until, seconds)

    def report(
        self,
        account_id: str,
        succeeded: bool,
        now: Optional[datetime] = None,
        context: Optional[ClientContext] = None,
        detail: Optional[str] = None,
    ) -> Optional[AttemptOutcome]:
        if succeeded:
            self._tracker.record_success(account_id, context)
            return None
        return self._tracker.record_failure(account_id, now, context, detail)
