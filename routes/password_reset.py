import logging

from flask import Blueprint, request, jsonify, current_app

from errors import EmailSendError, InvalidToken
from models import db
from models.user import User
from routes.auth import normalize_email
from security.password import hash_password
from security.password_policy import PasswordPolicy, validate_password
from security.records import AuditKind
from security.services import get_services
from security.session import revoke_all_sessions
from utils.client_context import ClientContext
from utils.clock import utcnow
from utils.notifications import send_password_reset_complete, send_password_reset_link

logger = logging.getLogger(__name__)

reset_bp = Blueprint("password_reset", __name__, url_prefix="/password-reset")

REQUEST_ACCEPTED = "If the account exists, a reset link has been sent."


@reset_bp.post("/request")
def request_reset():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))

    user = User.query.filter_by(email=email).first() if email else None
    if user is None:
        logger.info("Password reset requested for unknown account")
        return jsonify(message=REQUEST_ACCEPTED), 202

    services = get_services()
    issuer = services.reset_tokens
    token = issuer.issue(user.email)
    services.audit.record(
        AuditKind.PASSWORD_RESET_REQUESTED, user.email, ClientContext.from_request()
    )
    try:
        send_password_reset_link(user.email, issuer.build_link(token), issuer.policy.expiry_seconds)
    except EmailSendError:
        logger.exception("Reset link for %s not delivered", user.email)
    return jsonify(message=REQUEST_ACCEPTED), 202


@reset_bp.get("/confirm")
def confirm():
    """Tell the client whether to show the new-password form. Does not use up the token."""
    get_services().reset_tokens.peek(request.args.get("token"))
    return jsonify(valid=True), 200


@reset_bp.post("/reset")
def reset():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    new_password = data.get("new_password") or ""

    # Reject a weak password before the token is spent
    validate_password(new_password, PasswordPolicy.from_config(current_app.config))

    services = get_services()
    account_id = services.reset_tokens.consume(token)

    user = User.query.filter_by(email=account_id).first()
    if user is None:
        logger.warning("Reset token outlived its account %s", account_id)
        raise InvalidToken()

    user.password_hash = hash_password(new_password)
    user.password_changed_at = utcnow()
    db.session.commit()
    revoke_all_sessions(user.id)

    context = ClientContext.from_request()
    services.audit.record(AuditKind.PASSWORD_RESET, user.email, context)
    services.tracker.unlock(user.email, context, detail="Password reset")
    try:
        send_password_reset_complete(user.email)
    except EmailSendError:
        logger.exception("Reset confirmation for %s not delivered", user.email)
    return jsonify(message="Password has been reset"), 200
