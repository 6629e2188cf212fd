import logging
import sys

import click
import sqlalchemy as sa
from flask import Flask, jsonify
from flask_migrate import Migrate

from config import Config
from errors import AccountLocked, Error, InvalidToken, PasswordValidationError, SystemFailure
from models import db
from models.user import User, Role
from routes import health_bp, auth_bp, unlock_bp, reset_bp, admin_bp, audit_bp
from security import services as account_security
from utils.auth_context import load_current_user
from utils.seed import seed_roles

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level_name: str) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level_name or "INFO").upper(), logging.INFO))

    # create_app may run many times per process (tests); attach one handler
    if any(getattr(h, "_accountguard", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._accountguard = True
    root.addHandler(handler)


def register_error_handlers(app):
    @app.errorhandler(AccountLocked)
    def _account_locked(exc):
        resp = jsonify(error=exc.message, **exc.serialize)
        resp.headers["Retry-After"] = str(exc.seconds_remaining)
        return resp, 423

    @app.errorhandler(InvalidToken)
    def _invalid_token(exc):
        return jsonify(error=exc.message, **exc.serialize), 400

    @app.errorhandler(PasswordValidationError)
    def _weak_password(exc):
        return jsonify(error=exc.message, details=exc.details), 400

    @app.errorhandler(SystemFailure)
    def _system_failure(exc):
        logger.error("System failure: %s", exc.message, exc_info=exc)
        return jsonify(error="Something went wrong. Please try again later.", **exc.serialize), 500

    @app.errorhandler(Error)
    def _business_error(exc):
        return jsonify(error=exc.message, **exc.serialize), 400


def create_app(config_object=Config, store=None, clock=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(unlock_bp)
    app.register_blueprint(reset_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)
    register_error_handlers(app)

    db.init_app(app)
    Migrate(app, db)
    account_security.init_app(app, store=store, clock=clock)

    with app.app_context():
        if app.config.get("CREATE_TABLES"):
            db.create_all()
        # Fresh databases get their roles after `flask db upgrade`
        if sa.inspect(db.engine).has_table(Role.__tablename__):
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        # Recovery tokens travel in query strings
        resp.headers["Cache-Control"] = "no-store"
        return resp

    register_cli(app)
    logger.info("Account guard app created (max_attempts=%s)", app.config.get("MAX_LOGIN_ATTEMPTS"))
    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)

        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("unlock-account")
    @click.argument("email")
    def unlock_account(email):
        """Clear the failed-login counter and lock for EMAIL."""
        services = account_security.get_services()
        services.tracker.unlock(email.strip().lower(), detail="Unlocked from CLI")
        click.echo(f"{email} unlocked")

    @app.cli.command("purge-expired-tokens")
    def purge_expired_tokens():
        """Delete expired unlock and password-reset tokens."""
        services = account_security.get_services()
        for issuer in (services.unlock_tokens, services.reset_tokens):
            click.echo(f"{issuer.kind.value}: {issuer.purge_expired()} removed")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
