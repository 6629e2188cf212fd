import logging

from flask import Blueprint, request, jsonify, current_app, g

from errors import EmailSendError, PasswordValidationError
from models import db
from models.user import User, Role
from security.password import hash_password, verify_password, verify_current_password
from security.password_policy import PasswordPolicy, validate_password
from security.records import AuditKind
from security.services import get_services
from security.session import cookie_name, create_session, revoke_session, revoke_all_sessions
from utils.auth_context import login_required
from utils.client_context import ClientContext
from utils.clock import utcnow
from utils.notifications import send_account_locked

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def normalize_email(value) -> str:
    return (value or "").strip().lower() if isinstance(value, str) else ""


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _password_policy() -> PasswordPolicy:
    return PasswordPolicy.from_config(current_app.config)


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    name = (data.get("name") or "").strip() or None

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    validate_password(password, _password_policy())

    if User.query.filter_by(email=email).first():
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), name=name)
    db.session.add(user)

    customer_role = Role.query.filter_by(name="CUSTOMER").first()
    if customer_role:
        user.roles.append(customer_role)

    db.session.commit()
    logger.info("Registered account %s", email)
    return jsonify(message="Registered successfully"), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password")
    if not isinstance(password, str):
        # Counted as a bad credential like any other wrong password
        password = ""
    if not email:
        return jsonify(error="Invalid credentials"), 401

    services = get_services()
    context = ClientContext.from_request()

    # Raises AccountLocked before the password is ever looked at
    services.gate.guard(email, context=context)

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        outcome = services.gate.report(
            email, False, context=context, detail="Bad credentials"
        )
        if outcome.locked_now:
            if user:
                try:
                    send_account_locked(user.email, user.name)
                except EmailSendError:
                    logger.exception("Lock notification for %s not delivered", email)
            return jsonify(
                error="Too many failed attempts. Account locked.",
                error_code="account_locked",
                locked_until=outcome.locked_until.isoformat(),
                lock_duration_ms=services.tracker.policy.lock_duration_ms,
            ), 423
        return jsonify(error="Invalid credentials"), 401

    services.gate.report(email, True, context=context)

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id, context)

    resp = jsonify(message="Login OK", revoked_sessions=revoked_count)
    resp.set_cookie(
        cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        name=g.user.name,
        roles=[r.name for r in g.user.roles],
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(request.cookies.get(cookie_name()))
    get_services().audit.record(AuditKind.LOGOUT, g.user.email, ClientContext.from_request())

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name(), path="/")
    return resp, 200


@auth_bp.post("/change_password")
@login_required
def change_password():
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password") or ""
    new_password = data.get("new_password") or ""

    if not current_password:
        return jsonify(error="Current password is required"), 400
    if not verify_current_password(current_password, g.user.password_hash):
        return jsonify(error="Invalid current password"), 400

    validate_password(new_password, _password_policy())
    if verify_password(new_password, g.user.password_hash):
        raise PasswordValidationError(
            "Password does not meet policy", ["New password must differ from the current one"]
        )

    g.user.password_hash = hash_password(new_password)
    g.user.password_changed_at = utcnow()
    db.session.commit()

    get_services().audit.record(
        AuditKind.PASSWORD_CHANGED, g.user.email, ClientContext.from_request()
    )
    return jsonify(message="Password updated"), 200
