"""
Ledger store: durable storage of accounts and transactions.

Every read and write of Account and Transaction rows goes through
this class. It owns three responsibilities the services rely on:

1. Lookups that raise typed NotFound errors instead of returning None
2. Commits that are durable when they return, with SQLAlchemy errors
   translated to ConcurrentModification / StorageFailure
3. Per-account locks, acquired in a fixed order, so two operations
   touching the same account never interleave their read-modify-write

The store takes a session as a constructor argument; the Transaction
Engine decides where an atomic unit begins and ends.
"""

import enum
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator

from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased
from sqlalchemy.orm.exc import StaleDataError

from ledger_engine.exceptions import (
    AccountNotFound,
    ConcurrentModification,
    CustomerNotFound,
    StorageFailure,
    TransactionNotFound,
)
from ledger_engine.logging_config import get_logger
from ledger_engine.models import (
    Account,
    AccountStatus,
    Customer,
    Transaction,
    TransactionStatus,
    TransactionType,
)

logger = get_logger("ledger_store")


class SortOrder(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class TransactionQuery:
    """
    Filter for query_transactions. Unset fields do not filter.

    due_at selects SCHEDULED records whose scheduled_date has passed;
    it is combined with, not a replacement for, the other fields.
    """

    account_number: str | None = None
    statuses: tuple[TransactionStatus, ...] = ()
    types: tuple[TransactionType, ...] = ()
    start: datetime | None = None
    end: datetime | None = None
    due_at: datetime | None = None


class AccountLocks:
    """
    One re-entrant lock per account number, shared by the process.

    hold() sorts the numbers before acquiring, so a transfer A->B and
    a transfer B->A can never deadlock each other. An entry lives only
    while some hold() uses or waits on it, so numbers that never match
    an account leave nothing behind.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # account number -> [lock, holders and waiters]
        self._locks: dict[str, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, account_number: str) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(account_number)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[account_number] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, account_number: str) -> None:
        with self._guard:
            entry = self._locks[account_number]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[account_number]

    @contextmanager
    def hold(self, *account_numbers: str | None) -> Iterator[None]:
        ordered = sorted({n for n in account_numbers if n})
        acquired: list[tuple[str, threading.RLock]] = []
        try:
            for number in ordered:
                lock = self._checkout(number)
                lock.acquire()
                acquired.append((number, lock))
            yield
        finally:
            for number, lock in reversed(acquired):
                lock.release()
                self._checkin(number)


account_locks = AccountLocks()


class LedgerStore:
    """
    All Account and Transaction persistence passes through this class.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Accounts ---

    def get_account(self, account_number: str, for_update: bool = False) -> Account:
        """
        Load an account by number.

        for_update re-reads the row even if the session already holds
        it, and asks the database for a row lock where one exists
        (SQLite ignores FOR UPDATE; the version check still applies).
        """
        stmt = select(Account).where(Account.account_number == account_number)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        account = self._run(lambda: self.db.execute(stmt).scalar_one_or_none())
        if account is None:
            raise AccountNotFound(f"Account not found: {account_number}")
        return account

    def account_number_exists(self, account_number: str) -> bool:
        found = self._run(lambda: self.db.execute(
            select(Account.id).where(Account.account_number == account_number)
        ).first())
        return found is not None

    def add_account(self, account: Account) -> Account:
        self.db.add(account)
        return self.save_account(account)

    def save_account(self, account: Account) -> Account:
        """
        Flush pending changes to an account.

        The UPDATE is guarded by the version read earlier; if another
        writer committed in between, nothing is written and
        ConcurrentModification is raised.
        """
        self.flush()
        return account

    def query_accounts(
        self,
        customer_id: int | None = None,
        status: AccountStatus | None = None,
    ) -> list[Account]:
        stmt = select(Account).order_by(Account.id)
        if customer_id is not None:
            stmt = stmt.where(Account.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(Account.status == status)
        return list(self._run(lambda: self.db.execute(stmt).scalars().all()))

    # --- Customers ---

    def get_customer(self, customer_id: int) -> Customer:
        customer = self._run(lambda: self.db.get(Customer, customer_id))
        if customer is None:
            raise CustomerNotFound(f"Customer not found: {customer_id}")
        return customer

    def find_customer_by_email(self, email: str) -> Customer | None:
        return self._run(lambda: self.db.execute(
            select(Customer).where(Customer.email == email)
        ).scalar_one_or_none())

    def add_customer(self, customer: Customer) -> Customer:
        self.db.add(customer)
        self.flush()
        return customer

    # --- Transactions ---

    def get_transaction(self, transaction_id: str, for_update: bool = False) -> Transaction:
        stmt = select(Transaction).where(Transaction.transaction_id == transaction_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        txn = self._run(lambda: self.db.execute(stmt).scalar_one_or_none())
        if txn is None:
            raise TransactionNotFound(f"Transaction not found: {transaction_id}")
        return txn

    def save_transaction(self, txn: Transaction) -> Transaction:
        self.db.add(txn)
        self.flush()
        return txn

    def query_transactions(
        self,
        query: TransactionQuery,
        limit: int | None = None,
        order: SortOrder = SortOrder.DESC,
    ) -> list[Transaction]:
        """
        Return transactions matching every set field of query.

        Results are ordered by transaction_date, then id as a tie
        breaker, so history for one account is a total order.
        """
        stmt = select(Transaction)

        if query.account_number is not None:
            source = aliased(Account)
            target = aliased(Account)
            stmt = (
                stmt.outerjoin(source, Transaction.source_account_id == source.id)
                .outerjoin(target, Transaction.target_account_id == target.id)
                .where(or_(
                    source.account_number == query.account_number,
                    target.account_number == query.account_number,
                ))
            )
        if query.statuses:
            stmt = stmt.where(Transaction.status.in_(query.statuses))
        if query.types:
            stmt = stmt.where(Transaction.transaction_type.in_(query.types))
        if query.start is not None:
            stmt = stmt.where(Transaction.transaction_date >= query.start)
        if query.end is not None:
            stmt = stmt.where(Transaction.transaction_date <= query.end)
        if query.due_at is not None:
            stmt = stmt.where(
                Transaction.status == TransactionStatus.SCHEDULED,
                Transaction.scheduled_date <= query.due_at,
            )

        if order == SortOrder.ASC:
            # Scheduled work is ordered by when it falls due
            by_schedule = query.due_at is not None or query.statuses == (TransactionStatus.SCHEDULED,)
            sort_date = Transaction.scheduled_date if by_schedule else Transaction.transaction_date
            stmt = stmt.order_by(sort_date.asc(), Transaction.id.asc())
        else:
            stmt = stmt.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())

        if limit is not None:
            stmt = stmt.limit(limit)

        return list(self._run(lambda: self.db.execute(stmt).scalars().all()))

    # --- Unit of work ---

    def flush(self) -> None:
        self._run(self.db.flush)

    def commit(self) -> None:
        """Commit the current unit. Durable once this returns."""
        self._run(self.db.commit)

    def rollback(self) -> None:
        self.db.rollback()

    def _run(self, operation):
        """Run a session call, translating SQLAlchemy failures to core errors."""
        try:
            return operation()
        except StaleDataError as e:
            raise ConcurrentModification(
                f"Record was modified by another writer: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error("storage_failure", extra={"error": str(e)})
            raise StorageFailure(f"Ledger storage failure: {e}") from e

