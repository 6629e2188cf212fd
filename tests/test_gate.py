"""Tests for the lockout checks around credential verification"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from conftest import T0
from errors import AccountLocked
from security.records import AuditKind
from utils.client_context import ClientContext

ACCOUNT = "a@x.com"


def _attempt_login(gate, verifier, password, now=None):
    """Minimal login flow: guard, verify, report."""
    gate.guard(ACCOUNT, now)
    ok = verifier(password)
    return gate.report(ACCOUNT, ok, now)


class TestGuard:
    def test_clear_account_passes(self, gate):
        assert gate.guard(ACCOUNT) is None

    def test_locked_account_rejected_before_verification(self, gate):
        """Scenario: the correct password is never checked while locked"""
        for _ in range(5):
            gate.report(ACCOUNT, False)

        verifier = MagicMock(return_value=True)
        with pytest.raises(AccountLocked) as exc_info:
            _attempt_login(gate, verifier, "right-password", now=T0 + timedelta(minutes=1))

        verifier.assert_not_called()
        assert exc_info.value.locked_until == T0 + timedelta(minutes=30)
        assert exc_info.value.seconds_remaining == 29 * 60

    def test_retry_after_rounds_up(self, gate):
        for _ in range(5):
            gate.report(ACCOUNT, False)

        with pytest.raises(AccountLocked) as exc_info:
            gate.guard(ACCOUNT, now=T0 + timedelta(minutes=30) - timedelta(milliseconds=200))
        assert exc_info.value.seconds_remaining == 1

    def test_passes_again_once_lock_lapses(self, gate):
        for _ in range(5):
            gate.report(ACCOUNT, False)
        assert gate.guard(ACCOUNT, now=T0 + timedelta(minutes=30)) is None

    def test_blocked_attempt_is_audited(self, gate, memory_store):
        for _ in range(5):
            gate.report(ACCOUNT, False)
        context = ClientContext(ip_address="198.51.100.4", user_agent="curl/8")

        with pytest.raises(AccountLocked):
            gate.guard(ACCOUNT, context=context)

        blocked = memory_store.audit_entries(ACCOUNT)[-1]
        assert blocked.kind == AuditKind.LOGIN_BLOCKED
        assert blocked.ip_address == "198.51.100.4"

    def test_blocked_attempt_does_not_count(self, gate, memory_store):
        for _ in range(5):
            gate.report(ACCOUNT, False)
        for _ in range(3):
            with pytest.raises(AccountLocked):
                gate.guard(ACCOUNT)
        assert memory_store.get_attempt(ACCOUNT).failure_count == 5


class TestReport:
    def test_failure_returns_outcome(self, gate):
        outcome = gate.report(ACCOUNT, False)
        assert outcome.failure_count == 1
        assert not outcome.locked

    def test_fifth_failure_locks(self, gate):
        verifier = MagicMock(return_value=False)
        outcomes = [_attempt_login(gate, verifier, "wrong") for _ in range(5)]
        assert outcomes[-1].locked_now
        assert verifier.call_count == 5

    def test_success_clears_counter(self, gate, memory_store):
        gate.report(ACCOUNT, False)
        gate.report(ACCOUNT, False)
        assert gate.report(ACCOUNT, True) is None
        assert memory_store.get_attempt(ACCOUNT) is None
