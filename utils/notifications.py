"""Customer emails for the lockout and recovery flows."""
from urllib.parse import urlencode

from flask import current_app

from security.policy import DEFAULT_HOST_URL
from utils.emailer import send_email


def _host_url() -> str:
    return (current_app.config.get("HOST_URL") or DEFAULT_HOST_URL).rstrip("/")


def _greeting(name) -> str:
    return f"Hello {name}," if name else "Hello,"


def send_account_locked(email: str, name=None) -> bool:
    request_link = f"{_host_url()}/account-unlock/request?{urlencode({'email': email})}"
    body = (
        f"{_greeting(name)}\n\n"
        "Your account has been temporarily locked after too many failed sign-in attempts.\n\n"
        "If you would like to unlock it now, request an unlock link here:\n"
        f"{request_link}\n\n"
        "If this wasn't you, consider resetting your password."
    )
    return send_email(email, "Your account has been locked", body)


def send_unlock_link(email: str, link: str, expiry_seconds: int, name=None) -> bool:
    body = (
        f"{_greeting(name)}\n\n"
        "We received a request to unlock your account. Use the link below to finish:\n"
        f"{link}\n\n"
        f"The link expires in {expiry_seconds // 60} minutes and can only be used once."
    )
    return send_email(email, "Unlock your account", body)


def send_unlock_complete(email: str) -> bool:
    return send_email(
        email,
        "Your account has been unlocked",
        "Your account is unlocked. You can sign in again.",
    )


def send_password_reset_link(email: str, link: str, expiry_seconds: int) -> bool:
    body = (
        "Use the link below to reset your password:\n"
        f"{link}\n\n"
        f"The link expires in {expiry_seconds // 60} minutes and can only be used once. "
        "If you didn't ask for this, you can ignore this email."
    )
    return send_email(email, "Reset your password", body)


def send_password_reset_complete(email: str) -> bool:
    return send_email(
        email,
        "Your password was reset",
        "Your password has been reset. Sign in with your new password.",
    )
