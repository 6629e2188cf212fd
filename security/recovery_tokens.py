"""
Single-use recovery tokens for the account-unlock and password-reset flows.

One issuer per ``TokenKind``; the kinds use disjoint tables and never accept
each other's tokens. A token is valid while its row exists and ``now`` is
before ``expires_at``. ``consume`` deletes the row in the same step that
validates it, so a token can succeed at most once.

Callers get a single ``InvalidToken`` error for every failure cause. Telling
"expired" apart from "unknown" would help someone guessing tokens.
"""
import logging
import secrets
from datetime import datetime
from typing import Optional

from errors import InvalidToken, StorageConflict, StorageError, TokenGenerationError
from security.policy import TokenPolicy
from security.records import RecoveryToken, TokenKind

logger = logging.getLogger(__name__)

# 48 random bytes -> 64 URL-safe characters
TOKEN_BYTES = 48
MAX_INSERT_ATTEMPTS = 3

_LINK_PATHS = {
    TokenKind.UNLOCK: "/account-unlock?token=",
    TokenKind.RESET: "/password-reset/confirm?token=",
}


def generate_token() -> str:
    try:
        return secrets.token_urlsafe(TOKEN_BYTES)
    except (NotImplementedError, OSError) as exc:
        logger.critical("Secure random source unavailable")
        raise TokenGenerationError("Could not generate a recovery token") from exc


class AccountRecoveryTokenIssuer:
    def __init__(self, kind: TokenKind, store, clock, policy: TokenPolicy):
        self.kind = kind
        self._store = store
        self._clock = clock
        self._policy = policy

    @property
    def policy(self) -> TokenPolicy:
        return self._policy

    def issue(self, account_id: str, now: Optional[datetime] = None) -> str:
        """Issue a fresh token for ``account_id``, revoking any it already has."""
        now = now or self._clock.now()

        for _ in range(MAX_INSERT_ATTEMPTS):
            record = RecoveryToken(
                kind=self.kind,
                account_id=account_id,
                token=generate_token(),
                issued_at=now,
                expires_at=now + self._policy.expiry,
            )
            try:
                revoked = self._store.replace_token(self.kind, record)
            except StorageConflict:
                logger.warning("Recovery token collision, regenerating (%s)", self.kind.value)
                continue
            if revoked:
                logger.info(
                    "Revoked %d outstanding %s token(s) for %s", revoked, self.kind.value, account_id
                )
            logger.info(
                "Issued %s token for %s, expires %s",
                self.kind.value, account_id, record.expires_at.isoformat(),
            )
            return record.token

        raise StorageError(f"Could not store a unique {self.kind.value} token")

    def consume(self, token: str, now: Optional[datetime] = None) -> str:
        """Validate and destroy ``token``; returns the account it was issued for.

        Raises:
            InvalidToken: unknown, already consumed, or expired.
        """
        now = now or self._clock.now()
        if not token:
            raise InvalidToken()

        record = self._store.take_token(self.kind, token)
        if record is None:
            logger.warning("Rejected %s token: not found or already used", self.kind.value)
            raise InvalidToken()
        if record.is_expired_at(now):
            logger.warning("Rejected %s token for %s: expired", self.kind.value, record.account_id)
            raise InvalidToken()

        logger.info("Consumed %s token for %s", self.kind.value, record.account_id)
        return record.account_id

    def peek(self, token: str, now: Optional[datetime] = None) -> str:
        """Check ``token`` without consuming it. Only for deciding what to render."""
        now = now or self._clock.now()
        if not token:
            raise InvalidToken()
        record = self._store.find_token(self.kind, token)
        if record is None or record.is_expired_at(now):
            raise InvalidToken()
        return record.account_id

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock.now()
        removed = self._store.delete_expired_tokens(self.kind, now)
        if removed:
            logger.info("Purged %d expired %s token(s)", removed, self.kind.value)
        return removed

    def build_link(self, token: str) -> str:
        return f"{self._policy.host_url}{_LINK_PATHS[self.kind]}{token}"
