from flask import Blueprint, jsonify, request

from models.audit_log import AuditLog
from security.records import AuditKind
from utils.auth_context import require_roles

audit_bp = Blueprint("audit", __name__, url_prefix="/super-admin")

_KINDS = {k.value for k in AuditKind}


@audit_bp.get("/audit-logs")
@require_roles("SUPER_ADMIN")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    kind = request.args.get("kind")
    account_id = request.args.get("account_id")

    if kind and kind not in _KINDS:
        return jsonify(error="Unknown audit kind", kinds=sorted(_KINDS)), 400

    q = AuditLog.query
    if kind:
        q = q.filter(AuditLog.kind == kind)
    if account_id:
        q = q.filter(AuditLog.account_id == account_id.strip().lower())

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
