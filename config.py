import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to this module as accountguard.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "accountguard.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "accountguard_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Account lockout
    MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
    LOCK_DURATION_MS = int(os.getenv("LOCK_DURATION_MS", str(30 * 60 * 1000)))
    # Bounded retries when concurrent logins race on the same attempt row
    STORAGE_CONFLICT_RETRIES = int(os.getenv("STORAGE_CONFLICT_RETRIES", "5"))

    # Recovery tokens
    UNLOCK_TOKEN_EXPIRY_SECONDS = int(os.getenv("UNLOCK_TOKEN_EXPIRY_SECONDS", "3600"))
    RESET_TOKEN_EXPIRY_SECONDS = int(os.getenv("RESET_TOKEN_EXPIRY_SECONDS", "3600"))

    # Public base URL used in emailed links
    HOST_URL = os.getenv("HOST_URL", "http://localhost:5002")

    # Password policy
    PASSWORD_MIN_LEN = 12
    PASSWORD_MAX_LEN = 128
    PASSWORD_REQUIRE_UPPER = True
    PASSWORD_REQUIRE_LOWER = True
    PASSWORD_REQUIRE_DIGIT = True
    PASSWORD_REQUIRE_SYMBOL = True

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Tables normally come from `flask db upgrade`
    CREATE_TABLES = False

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    CREATE_TABLES = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "DEBUG"
    HOST_URL = "http://testserver"

    SMTP_HOST = None
    SMTP_FROM_EMAIL = None
