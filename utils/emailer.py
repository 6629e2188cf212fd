import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

from errors import EmailSendError

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Send a plain-text email. Returns False when SMTP is not configured.

    Raises:
        EmailSendError: the SMTP exchange failed.
    """
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        logger.warning("SMTP not configured; dropping email %r to %s", subject, to_email)
        return False

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Email %r to %s failed: %s", subject, to_email, exc)
        raise EmailSendError("Email delivery failed") from exc

    logger.info("Email %r sent to %s", subject, to_email)
    return True
