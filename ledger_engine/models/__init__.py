"""
Database models package.

All models must be imported here so that Base.metadata knows
every table before init_db() or the test fixtures create them.
"""

from ledger_engine.models.base import Base
from ledger_engine.models.enums import (
    AccountStatus,
    AccountType,
    AuditOutcome,
    CustomerStatus,
    TransactionStatus,
    TransactionType,
)
from ledger_engine.models.audit_log import AuditLog
from ledger_engine.models.customer import Customer
from ledger_engine.models.account import Account
from ledger_engine.models.transaction import Transaction

__all__ = [
    "Base",
    "AccountStatus",
    "AccountType",
    "AuditOutcome",
    "CustomerStatus",
    "TransactionStatus",
    "TransactionType",
    "AuditLog",
    "Customer",
    "Account",
    "Transaction",
]
