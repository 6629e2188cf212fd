"""RECOVERY TOKEN MODELS

Unlock and password-reset tokens live in two tables with the same shape.
A row exists only while its token is outstanding: consuming a token deletes
the row, so "used" and "never issued" are indistinguishable.
"""
from models.db import db
from security.records import RecoveryToken, TokenKind


class _RecoveryTokenColumns:
    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.String(255), nullable=False, index=True)
    # secrets.token_urlsafe(48) yields 64 characters
    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    issued_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    kind = None

    @classmethod
    def from_record(cls, record: RecoveryToken):
        return cls(
            account_id=record.account_id,
            token=record.token,
            issued_at=record.issued_at,
            expires_at=record.expires_at,
        )

    def to_record(self) -> RecoveryToken:
        return RecoveryToken(
            kind=self.kind,
            account_id=self.account_id,
            token=self.token,
            issued_at=self.issued_at,
            expires_at=self.expires_at,
        )

    def __repr__(self):
        return f"<{type(self).__name__} account_id={self.account_id!r}>"


class AccountUnlockToken(_RecoveryTokenColumns, db.Model):
    __tablename__ = "account_unlock_tokens"

    kind = TokenKind.UNLOCK


class PasswordResetToken(_RecoveryTokenColumns, db.Model):
    __tablename__ = "password_reset_tokens"

    kind = TokenKind.RESET
