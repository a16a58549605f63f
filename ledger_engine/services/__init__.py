"""Business logic services."""

from ledger_engine.services.ledger_store import LedgerStore
from ledger_engine.services.account_service import AccountManager
from ledger_engine.services.transaction_service import TransactionEngine
from ledger_engine.services.scheduler import BankingScheduler

__all__ = ["LedgerStore", "AccountManager", "TransactionEngine", "BankingScheduler"]
