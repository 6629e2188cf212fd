from flask import Blueprint, jsonify, g

from routes.auth import normalize_email
from security.services import get_services
from utils.auth_context import require_roles
from utils.client_context import ClientContext

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/accounts/<path:email>/lock")
@require_roles("ADMIN")
def lock_status(email):
    account_id = normalize_email(email)
    tracker = get_services().tracker
    record = tracker.get_record(account_id)
    locked_until = tracker.locked_until(account_id)
    return jsonify(
        account_id=account_id,
        failure_count=record.failure_count if record else 0,
        last_attempt_at=record.last_attempt_at.isoformat() if record else None,
        locked=locked_until is not None,
        locked_until=locked_until.isoformat() if locked_until else None,
    ), 200


@admin_bp.post("/accounts/<path:email>/unlock")
@require_roles("ADMIN")
def unlock_account(email):
    account_id = normalize_email(email)
    had_record = get_services().tracker.unlock(
        account_id, ClientContext.from_request(), detail=f"Unlocked by admin {g.user.email}"
    )
    return jsonify(message="Account unlocked", account_id=account_id, had_attempts=had_record), 200
