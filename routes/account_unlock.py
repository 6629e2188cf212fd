import logging

from flask import Blueprint, request, jsonify

from errors import EmailSendError
from models.user import User
from routes.auth import normalize_email
from security.records import AuditKind
from security.services import get_services
from utils.client_context import ClientContext
from utils.notifications import send_unlock_complete, send_unlock_link

logger = logging.getLogger(__name__)

unlock_bp = Blueprint("account_unlock", __name__, url_prefix="/account-unlock")

REQUEST_ACCEPTED = "If the account exists, an unlock link has been sent."


@unlock_bp.post("/request")
def request_unlock():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))

    # Same answer for unknown accounts
    user = User.query.filter_by(email=email).first() if email else None
    if user is None:
        logger.info("Unlock requested for unknown account")
        return jsonify(message=REQUEST_ACCEPTED), 202

    services = get_services()
    issuer = services.unlock_tokens
    token = issuer.issue(user.email)
    services.audit.record(AuditKind.UNLOCK_REQUESTED, user.email, ClientContext.from_request())
    try:
        send_unlock_link(user.email, issuer.build_link(token), issuer.policy.expiry_seconds, user.name)
    except EmailSendError:
        logger.exception("Unlock link for %s not delivered", user.email)
    return jsonify(message=REQUEST_ACCEPTED), 202


@unlock_bp.route("", methods=["GET", "POST"])
def unlock():
    token = request.args.get("token")
    if token is None:
        token = (request.get_json(silent=True) or {}).get("token")

    services = get_services()
    account_id = services.unlock_tokens.consume(token)
    services.tracker.unlock(account_id, ClientContext.from_request(), detail="Unlock token")
    try:
        send_unlock_complete(account_id)
    except EmailSendError:
        logger.exception("Unlock confirmation for %s not delivered", account_id)
    return jsonify(message="Account unlocked"), 200
