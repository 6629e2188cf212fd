"""Wiring for the lockout and recovery services.

Each component only holds its injected collaborators; every piece of mutable
state lives in the store, so one set of instances serves all requests.
"""
from dataclasses import dataclass
from typing import Mapping

from flask import current_app

from security.gate import AuthenticationGate
from security.login_attempts import LoginAttemptTracker
from security.policy import LockoutPolicy, TokenPolicy
from security.records import TokenKind
from security.recovery_store import SqlRecoveryStore
from security.recovery_tokens import AccountRecoveryTokenIssuer
from utils.audit import AuditTrailRecorder
from utils.clock import SystemClock

EXTENSION_KEY = "account_security"


@dataclass(frozen=True)
class AccountSecurity:
    store: object
    clock: object
    audit: AuditTrailRecorder
    tracker: LoginAttemptTracker
    unlock_tokens: AccountRecoveryTokenIssuer
    reset_tokens: AccountRecoveryTokenIssuer
    gate: AuthenticationGate


def build_services(config: Mapping, store=None, clock=None) -> AccountSecurity:
    store = store if store is not None else SqlRecoveryStore()
    clock = clock if clock is not None else SystemClock()

    audit = AuditTrailRecorder(store, clock)
    tracker = LoginAttemptTracker(store, clock, LockoutPolicy.from_config(config), audit)
    return AccountSecurity(
        store=store,
        clock=clock,
        audit=audit,
        tracker=tracker,
        unlock_tokens=AccountRecoveryTokenIssuer(
            TokenKind.UNLOCK, store, clock, TokenPolicy.from_config(config, TokenKind.UNLOCK)
        ),
        reset_tokens=AccountRecoveryTokenIssuer(
            TokenKind.RESET, store, clock, TokenPolicy.from_config(config, TokenKind.RESET)
        ),
        gate=AuthenticationGate(tracker, audit, clock),
    )


def init_app(app, store=None, clock=None) -> AccountSecurity:
    services = build_services(app.config, store=store, clock=clock)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> AccountSecurity:
    return current_app.extensions[EXTENSION_KEY]
