from models.db import db
from security.records import AttemptRecord
from utils.clock import utcnow

class LoginAttempt(db.Model):
    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)

    # One row per account; concurrent writers race on failure_count
    account_id = db.Column(db.String(255), unique=True, nullable=False, index=True)

    failure_count = db.Column(db.Integer, default=0, nullable=False)
    last_attempt_at = db.Column(db.DateTime, nullable=False)
    locked_until = db.Column(db.DateTime, nullable=True)

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @classmethod
    def from_record(cls, record: AttemptRecord) -> "LoginAttempt":
        return cls(
            account_id=record.account_id,
            failure_count=record.failure_count,
            last_attempt_at=record.last_attempt_at,
            locked_until=record.locked_until,
        )

    def to_record(self) -> AttemptRecord:
        return AttemptRecord(
            account_id=self.account_id,
            failure_count=self.failure_count,
            last_attempt_at=self.last_attempt_at,
            locked_until=self.locked_until,
        )
