from models.db import db
from security.records import AuditEntry

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.String(255), nullable=False, index=True)
    kind = db.Column(db.String(40), nullable=False, index=True)  # e.g. LOGIN_FAILURE, ACCOUNT_LOCKED

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    detail = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, nullable=False, index=True)

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditLog":
        return cls(
            account_id=entry.account_id,
            kind=entry.kind.value,
            ip=entry.ip_address,
            user_agent=entry.user_agent[:255] if entry.user_agent else None,
            detail=entry.detail,
            timestamp=entry.timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "kind": self.kind,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
