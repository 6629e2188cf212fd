import logging
from typing import Optional

from errors import AuditWriteError, StorageError
from security.records import AuditEntry, AuditKind
from utils.client_context import ClientContext

logger = logging.getLogger(__name__)


class AuditTrailRecorder:
    """Append-only writer for account history rows.

    Rows are written after the state change they describe has been persisted,
    in their own transaction. A failed write is reported as ``AuditWriteError``
    and never undoes that state change.
    """

    def __init__(self, store, clock):
        self._store = store
        self._clock = clock

    def append(self, entry: AuditEntry) -> None:
        try:
            self._store.append_audit(entry)
        except StorageError as exc:
            logger.error(
                "Audit write failed: account_id=%s kind=%s", entry.account_id, entry.kind.value
            )
            raise AuditWriteError("Could not record audit entry") from exc
        logger.debug("Audit recorded: account_id=%s kind=%s", entry.account_id, entry.kind.value)

    def record(
        self,
        kind: AuditKind,
        account_id: str,
        context: Optional[ClientContext] = None,
        detail: Optional[str] = None,
        now=None,
    ) -> AuditEntry:
        context = context or ClientContext()
        entry = AuditEntry(
            account_id=account_id,
            timestamp=now or self._clock.now(),
            kind=kind,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            detail=detail,
        )
        self.append(entry)
        return entry
