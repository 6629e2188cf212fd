from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping

from security.records import TokenKind

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCK_DURATION_MS = 30 * 60 * 1000
DEFAULT_TOKEN_EXPIRY_SECONDS = 3600
DEFAULT_CONFLICT_RETRIES = 5
DEFAULT_HOST_URL = "http://localhost:5002"

_EXPIRY_KEYS = {
    TokenKind.UNLOCK: "UNLOCK_TOKEN_EXPIRY_SECONDS",
    TokenKind.RESET: "RESET_TOKEN_EXPIRY_SECONDS",
}


@dataclass(frozen=True)
class LockoutPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    lock_duration_ms: int = DEFAULT_LOCK_DURATION_MS
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.lock_duration_ms <= 0:
            raise ValueError("lock_duration_ms must be positive")
        if self.conflict_retries < 0:
            raise ValueError("conflict_retries cannot be negative")

    @property
    def lock_duration(self) -> timedelta:
        return timedelta(milliseconds=self.lock_duration_ms)

    @classmethod
    def from_config(cls, config: Mapping) -> "LockoutPolicy":
        return cls(
            max_attempts=int(config.get("MAX_LOGIN_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            lock_duration_ms=int(config.get("LOCK_DURATION_MS", DEFAULT_LOCK_DURATION_MS)),
            conflict_retries=int(config.get("STORAGE_CONFLICT_RETRIES", DEFAULT_CONFLICT_RETRIES)),
        )


@dataclass(frozen=True)
class TokenPolicy:
    expiry_seconds: int = DEFAULT_TOKEN_EXPIRY_SECONDS
    host_url: str = DEFAULT_HOST_URL

    def __post_init__(self):
        if self.expiry_seconds <= 0:
            raise ValueError("expiry_seconds must be positive")

    @property
    def expiry(self) -> timedelta:
        return timedelta(seconds=self.expiry_seconds)

    @classmethod
    def from_config(cls, config: Mapping, kind: TokenKind) -> "TokenPolicy":
        return cls(
            expiry_seconds=int(config.get(_EXPIRY_KEYS[kind], DEFAULT_TOKEN_EXPIRY_SECONDS)),
            host_url=(config.get("HOST_URL") or DEFAULT_HOST_URL).rstrip("/"),
        )
