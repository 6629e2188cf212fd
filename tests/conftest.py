"""
Test configuration and fixtures for the account guard tests
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app import create_app
from config import TestConfig
from models import db
from models.user import Role, User
from security.gate import AuthenticationGate
from security.login_attempts import LoginAttemptTracker
from security.password import hash_password
from security.policy import LockoutPolicy, TokenPolicy
from security.records import TokenKind
from security.recovery_store import InMemoryRecoveryStore
from security.recovery_tokens import AccountRecoveryTokenIssuer
from utils.audit import AuditTrailRecorder

# Meets the default password policy
USER_TEST_PASSWORD = "CorrectHorse1!"
NEW_STRONG_PASSWORD = "BatteryStaple2?"

T0 = datetime(2026, 1, 15, 9, 30, 0)


class FixedClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, now):
        self._now = now

    def now(self):
        return self._now

    def advance(self, **kwargs):
        self._now = self._now + timedelta(**kwargs)
        return self._now


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def memory_store():
    return InMemoryRecoveryStore()


@pytest.fixture
def lockout_policy():
    return LockoutPolicy(max_attempts=5, lock_duration_ms=1_800_000)


@pytest.fixture
def audit(memory_store, clock):
    return AuditTrailRecorder(memory_store, clock)


@pytest.fixture
def tracker(memory_store, clock, lockout_policy, audit):
    return LoginAttemptTracker(memory_store, clock, lockout_policy, audit)


@pytest.fixture
def gate(tracker, audit, clock):
    return AuthenticationGate(tracker, audit, clock)


@pytest.fixture
def unlock_issuer(memory_store, clock):
    policy = TokenPolicy(expiry_seconds=3600, host_url="http://testserver")
    return AccountRecoveryTokenIssuer(TokenKind.UNLOCK, memory_store, clock, policy)


@pytest.fixture
def reset_issuer(memory_store, clock):
    policy = TokenPolicy(expiry_seconds=3600, host_url="http://testserver")
    return AccountRecoveryTokenIssuer(TokenKind.RESET, memory_store, clock, policy)


@pytest.fixture
def app(clock):
    """Create application backed by a temporary SQLite file"""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    config = type(
        "FileTestConfig", (TestConfig,), {"SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}"}
    )

    app = create_app(config, clock=clock)
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["account_security"]


@pytest.fixture
def make_user(app):
    """Factory for persisted users; returns the user's email"""

    def _make(email, password=USER_TEST_PASSWORD, roles=("CUSTOMER",), name="Test User"):
        with app.app_context():
            user = User(email=email, password_hash=hash_password(password), name=name)
            for role_name in roles:
                user.roles.append(Role.query.filter_by(name=role_name).one())
            db.session.add(user)
            db.session.commit()
            return user.email

    return _make


def login(client, email, password=USER_TEST_PASSWORD, **headers):
    return client.post(
        "/auth/login", json={"email": email, "password": password}, headers=headers
    )


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr("security.password.BCRYPT_ROUNDS", 4)
