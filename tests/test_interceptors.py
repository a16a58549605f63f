"""
Tests for the logging and audit wrappers.
"""

import json
import logging
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_engine.exceptions import InsufficientFunds
from ledger_engine.interceptors import audit_call, intercept, is_audited, log_call
from ledger_engine.models import AccountType, AuditLog, AuditOutcome
from ledger_engine.schemas.account import CustomerCreate
from ledger_engine.services.account_service import AccountManager
from ledger_engine.services.transaction_service import TransactionEngine


def audit_rows(session_factory):
    session = session_factory()
    try:
        return list(session.execute(select(AuditLog).order_by(AuditLog.id)).scalars().all())
    finally:
        session.close()


def open_account(db_session, clock, deposit="100.00"):
    manager = AccountManager(db_session, clock=clock)
    customer = manager.create_customer(CustomerCreate(
        first_name="Test", last_name="User", email=f"{uuid.uuid4().hex[:8]}@test.com",
    ))
    return manager.open_account(customer.id, AccountType.SAVINGS, initial_deposit=Decimal(deposit))


class TestLogCall:

    def test_returns_result_and_logs_completion(self, caplog):
        wrapped = log_call(lambda x: x * 2, operation="double", acting_user="alice")

        with caplog.at_level(logging.INFO, logger="ledger_engine.interceptors"):
            assert wrapped(21) == 42

        record = caplog.records[-1]
        assert record.getMessage() == "call_completed"
        assert record.operation == "double"
        assert record.acting_user == "alice"

    def test_business_error_logged_and_reraised(self, caplog):
        def fail():
            raise InsufficientFunds("not enough")

        wrapped = log_call(fail, acting_user="bob")
        with caplog.at_level(logging.WARNING, logger="ledger_engine.interceptors"):
            with pytest.raises(InsufficientFunds):
                wrapped()

        assert caplog.records[-1].error_code == "INSUFFICIENT_FUNDS"


class TestAuditCall:

    def test_started_and_completed_rows(self, session_factory):
        wrapped = audit_call(lambda a, b=0: a + b, session_factory, "carol", "Calculator", "add")

        assert wrapped(1, b=2) == 3

        rows = audit_rows(session_factory)
        assert [r.outcome for r in rows] == [AuditOutcome.STARTED, AuditOutcome.COMPLETED]
        assert all(r.actor == "carol" and r.operation == "add" for r in rows)
        assert json.loads(rows[0].details) == {"args": ["1"], "kwargs": {"b": "2"}}

    def test_failed_row_survives_and_error_propagates(self, session_factory):
        def fail():
            raise InsufficientFunds("not enough")

        wrapped = audit_call(fail, session_factory, "dave", "Engine", "withdraw")
        with pytest.raises(InsufficientFunds):
            wrapped()

        rows = audit_rows(session_factory)
        assert [r.outcome for r in rows] == [AuditOutcome.STARTED, AuditOutcome.FAILED]
        details = json.loads(rows[1].details)
        assert details["error_code"] == "INSUFFICIENT_FUNDS"
        assert details["error_type"] == "InsufficientFunds"


class TestIntercept:

    def test_is_audited(self):
        assert is_audited("transfer")
        assert is_audited("open_account")
        assert not is_audited("history_for_account")
        assert not is_audited("get_account")

    def test_mutations_audited_reads_not(self, db_session, session_factory, clock):
        account = open_account(db_session, clock)
        engine = intercept(TransactionEngine(db_session, acting_user="erin", clock=clock),
                           "erin", session_factory)

        txn = engine.deposit(account.account_number, Decimal("5.00"))
        engine.history_for_account(account.account_number)

        assert engine.by_id(txn.transaction_id).amount == Decimal("5.00")
        rows = audit_rows(session_factory)
        assert [(r.event_type, r.operation, r.outcome) for r in rows] == [
            ("TransactionEngine", "deposit", AuditOutcome.STARTED),
            ("TransactionEngine", "deposit", AuditOutcome.COMPLETED),
        ]

    def test_failed_operation_audited(self, db_session, session_factory, clock):
        account = open_account(db_session, clock, deposit="10.00")
        engine = intercept(TransactionEngine(db_session, clock=clock), "frank", session_factory)

        with pytest.raises(InsufficientFunds):
            engine.withdraw(account.account_number, Decimal("50.00"))

        assert [r.outcome for r in audit_rows(session_factory)] == [
            AuditOutcome.STARTED, AuditOutcome.FAILED,
        ]

    def test_attributes_pass_through(self, db_session, clock):
        engine = TransactionEngine(db_session, acting_user="gina", clock=clock)
        proxy = intercept(engine, "gina")

        assert proxy.acting_user == "gina"
        assert proxy.target is engine
