"""ACCOUNT GUARD ERRORS"""


class Error(Exception):
    def __init__(self, message):
        self.message = message
        super().__init__(message)

    @property
    def serialize(self):
        return {"message": self.message}


class UserNotFound(Error):
    pass


class UserDuplicated(Error):
    pass


class AuthError(Error):
    pass


class PasswordValidationError(Error):
    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []

    @property
    def serialize(self):
        return {"message": self.message, "details": self.details}


class AccountLocked(Error):
    """Raised by the authentication gate while an account's lock is active."""

    def __init__(self, locked_until, seconds_remaining: int):
        super().__init__("Account temporarily locked. Try again later.")
        self.locked_until = locked_until
        self.seconds_remaining = seconds_remaining

    @property
    def serialize(self):
        return {
            "message": self.message,
            "error_code": "account_locked",
            "locked_until": self.locked_until.isoformat() if self.locked_until else None,
            "retry_after_seconds": self.seconds_remaining,
        }


class InvalidToken(Error):
    """Unknown, already used and expired tokens all look the same to callers."""

    MESSAGE = "Invalid or expired token."

    def __init__(self):
        super().__init__(self.MESSAGE)

    @property
    def serialize(self):
        return {"message": self.message, "error_code": "invalid_token"}


class StorageConflict(Error):
    """A conditional write lost a race against another writer."""


class SystemFailure(Error):
    @property
    def serialize(self):
        return {"message": "An internal error occurred.", "error_code": "system_error"}


class StorageError(SystemFailure):
    pass


class TokenGenerationError(SystemFailure):
    pass


class AuditWriteError(SystemFailure):
    pass


class EmailSendError(SystemFailure):
    pass
