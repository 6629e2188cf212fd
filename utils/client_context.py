from dataclasses import dataclass
from typing import Optional

from flask import has_request_context, request

UNKNOWN = "unknown"


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded and forwarded.lower() != UNKNOWN:
        # First hop is the original client
        return forwarded.split(",")[0].strip()
    return request.remote_addr or UNKNOWN


@dataclass(frozen=True)
class ClientContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls) -> "ClientContext":
        if not has_request_context():
            return cls()
        user_agent = request.headers.get("User-Agent") or None
        return cls(
            ip_address=client_ip(),
            user_agent=user_agent[:255] if user_agent else None,
        )
