"""
Transaction engine: deposits, withdrawals, transfers, reversals
and scheduled execution.

Each mutating operation is one atomic unit:
1. Validate inputs (amount, distinct accounts); nothing is recorded yet
2. Acquire the per-account locks in account-number order
3. Re-read the accounts, open a PROCESSING record (or claim a
   SCHEDULED one)
4. Debit / credit through the AccountManager and write the balance
   snapshots
5. Mark COMPLETED and commit everything together

If step 3 or 4 raises a BankingError the unit is rolled back and a
FAILED record is committed on its own, then the original error is
re-raised. ConcurrentModification restarts the unit from step 2, a
bounded number of times.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_engine.clock import Clock, as_naive_utc
from ledger_engine.config import get_settings
from ledger_engine.exceptions import (
    BankingError,
    ConcurrentModification,
    InvalidInput,
    InvalidReversalState,
    InvalidScheduleDate,
    InvalidTransfer,
    UnsupportedScheduledType,
    AccountNotActive,
)
from ledger_engine.logging_config import get_logger
from ledger_engine.models.account import Account
from ledger_engine.models.enums import TransactionStatus, TransactionType
from ledger_engine.models.transaction import Transaction
from ledger_engine.security import Authorizer, Capability, allow_all, require
from ledger_engine.services.account_service import AccountManager, check_amount
from ledger_engine.services.ledger_store import (
    LedgerStore,
    SortOrder,
    TransactionQuery,
    account_locks,
)

logger = get_logger("transaction_engine")
settings = get_settings()


class Direction(str, enum.Enum):
    """Which balances a movement touches."""
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    TRANSFER = "TRANSFER"


@dataclass
class Movement:
    """
    Everything needed to (re)run one atomic unit from scratch.

    scheduled_id executes an existing SCHEDULED record in place;
    reverses_id marks the unit as compensating that original.
    opened is set once a record has been built, after which a
    business failure leaves a FAILED record behind.
    """

    transaction_type: TransactionType
    direction: Direction
    amount: Decimal
    description: str
    source_number: str
    target_number: str | None = None
    scheduled_id: str | None = None
    reverses_id: str | None = None
    opened: bool = False


def direction_for(transaction_type: TransactionType) -> Direction | None:
    """Direction a scheduled record of this type executes with, if supported."""
    if transaction_type.is_transfer:
        return Direction.TRANSFER
    if transaction_type == TransactionType.WITHDRAWAL:
        return Direction.DEBIT
    if transaction_type == TransactionType.DEPOSIT:
        return Direction.CREDIT
    return None


class TransactionEngine:

    def __init__(
        self,
        db: Session,
        acting_user: str = "system",
        clock: Clock | None = None,
        authorizer: Authorizer = allow_all,
        max_retries: int | None = None,
    ):
        self.db = db
        self.acting_user = acting_user
        self.clock = clock or Clock()
        self.authorizer = authorizer
        self.max_retries = (
            settings.MAX_CONFLICT_RETRIES if max_retries is None else max_retries
        )
        self.store = LedgerStore(db)
        self.accounts = AccountManager(
            db, clock=self.clock, authorizer=authorizer, acting_user=acting_user
        )

    # --- Real-time operations ---

    def deposit(
        self, account_number: str, amount: Decimal, description: str = "Deposit"
    ) -> Transaction:
        """Credit an account. The record carries the account as its source."""
        self._check_amount(amount)
        return self._run(Movement(
            transaction_type=TransactionType.DEPOSIT,
            direction=Direction.CREDIT,
            amount=amount,
            description=description,
            source_number=account_number,
        ))

    def withdraw(
        self, account_number: str, amount: Decimal, description: str = "Withdrawal"
    ) -> Transaction:
        """Debit an account, drawing on its overdraft facility if needed."""
        self._check_amount(amount)
        return self._run(Movement(
            transaction_type=TransactionType.WITHDRAWAL,
            direction=Direction.DEBIT,
            amount=amount,
            description=description,
            source_number=account_number,
        ))

    def transfer(
        self,
        source_number: str,
        target_number: str,
        amount: Decimal,
        description: str = "Transfer",
    ) -> Transaction:
        """
        Move funds between two accounts.

        The debit and the credit commit together or not at all.
        """
        self._check_distinct(source_number, target_number)
        self._check_amount(amount)
        return self._run(Movement(
            transaction_type=TransactionType.TRANSFER,
            direction=Direction.TRANSFER,
            amount=amount,
            description=description,
            source_number=source_number,
            target_number=target_number,
        ))

    def reverse(self, transaction_id: str, reason: str) -> Transaction:
        """
        Compensate a COMPLETED transaction with a REVERSAL record.

        A transfer is reversed by the swapped transfer, a credit by a
        debit of the same account and a debit by a credit. The
        original moves to REVERSED in the same commit.
        """
        require(self.authorizer, self.acting_user, Capability.TRANSACTION_REVERSE)

        original = self.store.get_transaction(transaction_id)
        self._check_reversible(original)

        original_type = original.transaction_type
        if original_type.is_transfer:
            movement = Movement(
                transaction_type=TransactionType.REVERSAL,
                direction=Direction.TRANSFER,
                amount=original.amount,
                description="",
                source_number=original.target_account_number,
                target_number=original.source_account_number,
            )
        elif original_type.is_credit:
            movement = Movement(
                transaction_type=TransactionType.REVERSAL,
                direction=Direction.DEBIT,
                amount=original.amount,
                description="",
                source_number=original.source_account_number,
            )
        elif original_type.is_debit:
            movement = Movement(
                transaction_type=TransactionType.REVERSAL,
                direction=Direction.CREDIT,
                amount=original.amount,
                description="",
                source_number=original.source_account_number,
            )
        else:
            raise InvalidReversalState(
                f"Transactions of type {original_type.value} cannot be reversed"
            )

        movement.description = f"Reversal of {transaction_id}: {reason}"[:255]
        movement.reverses_id = transaction_id
        return self._run(movement)

    # --- Scheduled operations ---

    def schedule_future(
        self,
        source_number: str,
        target_number: str | None,
        amount: Decimal,
        transaction_type: TransactionType,
        scheduled_date: datetime,
        description: str = "Scheduled transaction",
    ) -> Transaction:
        """
        Record a SCHEDULED transaction to be executed once its date passes.

        No balance changes until execute_scheduled() runs it. An aware
        scheduled_date is stored as naive UTC.
        """
        self._check_amount(amount)
        scheduled_date = as_naive_utc(scheduled_date)
        now = self.clock.now()
        if scheduled_date <= now:
            raise InvalidScheduleDate(
                f"Scheduled date {scheduled_date.isoformat()} is not in the future"
            )
        if transaction_type.is_transfer:
            if not target_number:
                raise InvalidTransfer("Scheduled transfers need a target account")
            self._check_distinct(source_number, target_number)
        elif target_number:
            raise InvalidTransfer(
                f"{transaction_type.value} takes a single account, not a target"
            )

        source = self.store.get_account(source_number)
        target = self.store.get_account(target_number) if target_number else None
        if not source.is_active:
            raise AccountNotActive(
                f"Account {source_number} is not active "
                f"(status: {source.status.value})"
            )

        txn = Transaction.new(
            transaction_type=transaction_type,
            amount=amount,
            currency=source.currency,
            description=description,
            status=TransactionStatus.SCHEDULED,
            created_at=now,
            source_account=source,
            target_account=target,
            scheduled_date=scheduled_date,
        )
        self.store.save_transaction(txn)
        self.store.commit()

        logger.info(
            "transaction_scheduled",
            extra={
                "transaction_id": txn.transaction_id,
                "transaction_type": transaction_type.value,
                "amount": str(amount),
                "scheduled_date": scheduled_date.isoformat(),
                "acting_user": self.acting_user,
            },
        )
        return txn

    def execute_scheduled(self, transaction_id: str) -> Transaction:
        """
        Execute a SCHEDULED record in place.

        Transfers, withdrawals and deposits run through the same unit
        as the real-time operations. Any other type is marked FAILED
        and UnsupportedScheduledType is raised.
        """
        txn = self.store.get_transaction(transaction_id)
        if txn.status != TransactionStatus.SCHEDULED:
            raise InvalidInput(
                f"Transaction {transaction_id} is {txn.status.value}, not SCHEDULED"
            )

        direction = direction_for(txn.transaction_type)
        if direction is None:
            return self._fail_unsupported(txn)

        return self._run(Movement(
            transaction_type=txn.transaction_type,
            direction=direction,
            amount=txn.amount,
            description=txn.description,
            source_number=txn.source_account_number,
            target_number=txn.target_account_number if direction == Direction.TRANSFER else None,
            scheduled_id=transaction_id,
        ))

    # --- Reads ---

    def by_id(self, transaction_id: str) -> Transaction:
        return self.store.get_transaction(transaction_id)

    def history_for_account(
        self, account_number: str, limit: int | None = None
    ) -> list[Transaction]:
        """Transactions touching the account, newest first."""
        self.store.get_account(account_number)
        return self.store.query_transactions(
            TransactionQuery(account_number=account_number), limit=limit
        )

    def pending(self) -> list[Transaction]:
        """Records not yet terminal: PENDING and in-flight PROCESSING."""
        return self.store.query_transactions(
            TransactionQuery(
                statuses=(TransactionStatus.PENDING, TransactionStatus.PROCESSING)
            ),
            order=SortOrder.ASC,
        )

    def scheduled(self) -> list[Transaction]:
        """SCHEDULED records, earliest scheduled date first."""
        return self.store.query_transactions(
            TransactionQuery(statuses=(TransactionStatus.SCHEDULED,)),
            order=SortOrder.ASC,
        )

    def due_now(self, now: datetime | None = None) -> list[Transaction]:
        """SCHEDULED records whose scheduled date is at or before now."""
        due_at = as_naive_utc(now) if now else self.clock.now()
        return self.store.query_transactions(
            TransactionQuery(due_at=due_at), order=SortOrder.ASC
        )

    # --- Atomic unit ---

    def _run(self, movement: Movement) -> Transaction:
        """Run a movement, retrying on version conflicts."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._attempt(movement)
            except ConcurrentModification as e:
                self.store.rollback()
                if attempt > self.max_retries:
                    logger.error(
                        "conflict_retries_exhausted",
                        extra={"attempts": attempt, "source": movement.source_number},
                    )
                    self._record_failure(movement, e)
                    raise
                logger.warning(
                    "conflict_retry",
                    extra={"attempt": attempt, "source": movement.source_number},
                )
            except BankingError as e:
                self.store.rollback()
                self._record_failure(movement, e)
                raise
            except Exception:
                self.store.rollback()
                raise

    def _attempt(self, movement: Movement) -> Transaction:
        with account_locks.hold(movement.source_number, movement.target_number):
            source = self.store.get_account(movement.source_number, for_update=True)
            target = None
            if movement.target_number:
                target = self.store.get_account(movement.target_number, for_update=True)

            original = None
            if movement.reverses_id:
                original = self.store.get_transaction(movement.reverses_id, for_update=True)
                self._check_reversible(original)

            now = self.clock.now()
            txn = self._open_record(movement, source, target, now)
            txn.reference_transaction = original
            movement.opened = True

            if target is not None and target.currency != source.currency:
                raise InvalidTransfer(
                    f"Currency mismatch: {source.currency} -> {target.currency}"
                )

            self._apply(movement, txn, source, target)
            txn.mark_completed(now)
            if original is not None:
                original.mark_reversed(now)

            self.store.save_transaction(txn)
            self.store.commit()

        logger.info(
            "transaction_completed",
            extra={
                "transaction_id": txn.transaction_id,
                "transaction_type": txn.transaction_type.value,
                "amount": str(txn.amount),
                "source": movement.source_number,
                "target": movement.target_number,
                "acting_user": self.acting_user,
            },
        )
        return txn

    def _open_record(
        self,
        movement: Movement,
        source: Account,
        target: Account | None,
        now: datetime,
    ) -> Transaction:
        """Build a PROCESSING record, or claim the SCHEDULED one being executed."""
        if movement.scheduled_id:
            txn = self.store.get_transaction(movement.scheduled_id, for_update=True)
            if txn.status != TransactionStatus.SCHEDULED:
                raise InvalidInput(
                    f"Transaction {txn.transaction_id} was already executed "
                    f"({txn.status.value})"
                )
            txn.transaction_date = now
        else:
            txn = Transaction.new(
                transaction_type=movement.transaction_type,
                amount=movement.amount,
                currency=source.currency,
                description=movement.description,
                status=TransactionStatus.PENDING,
                created_at=now,
                source_account=source,
                target_account=target,
            )
        txn.mark_processing(now)
        return txn

    def _apply(
        self,
        movement: Movement,
        txn: Transaction,
        source: Account,
        target: Account | None,
    ) -> None:
        source_before = source.position
        if movement.direction == Direction.CREDIT:
            self.accounts.credit(source, movement.amount)
        else:
            self.accounts.debit(source, movement.amount)

        if movement.direction == Direction.TRANSFER:
            target_before = target.position
            self.accounts.credit(target, movement.amount)
            txn.record_target_balances(target_before, target.position)

        txn.record_source_balances(source_before, source.position)

    def _record_failure(self, movement: Movement, error: BankingError) -> None:
        """
        Commit a FAILED record for a unit that opened one.

        Runs after the unit was rolled back, in a fresh database
        transaction. A failure here is logged; the caller still gets
        the original error.
        """
        if not movement.opened:
            return
        now = self.clock.now()
        try:
            if movement.scheduled_id:
                txn = self.store.get_transaction(movement.scheduled_id, for_update=True)
                if txn.status != TransactionStatus.SCHEDULED:
                    logger.info(
                        "scheduled_already_finished",
                        extra={"transaction_id": txn.transaction_id, "status": txn.status.value},
                    )
                    return
                txn.transaction_date = now
            else:
                source = self.store.get_account(movement.source_number)
                target = None
                if movement.target_number:
                    target = self.store.get_account(movement.target_number)
                txn = Transaction.new(
                    transaction_type=movement.transaction_type,
                    amount=movement.amount,
                    currency=source.currency,
                    description=movement.description,
                    status=TransactionStatus.PENDING,
                    created_at=now,
                    source_account=source,
                    target_account=target,
                )
                if movement.reverses_id:
                    txn.reference_transaction = self.store.get_transaction(movement.reverses_id)

            txn.mark_processing(now)
            txn.mark_failed(error.message, now)
            self.store.save_transaction(txn)
            self.store.commit()
        except BankingError:
            self.store.rollback()
            logger.exception(
                "failure_record_not_written",
                extra={"source": movement.source_number, "error_code": error.code},
            )
            return

        logger.warning(
            "transaction_failed",
            extra={
                "transaction_id": txn.transaction_id,
                "transaction_type": txn.transaction_type.value,
                "error_code": error.code,
                "reason": error.message,
                "acting_user": self.acting_user,
            },
        )

    def _fail_unsupported(self, txn: Transaction) -> Transaction:
        """Mark a scheduled record of an unsupported type FAILED, then raise."""
        with account_locks.hold(txn.source_account_number, txn.target_account_number):
            txn = self.store.get_transaction(txn.transaction_id, for_update=True)
            if txn.status != TransactionStatus.SCHEDULED:
                raise InvalidInput(
                    f"Transaction {txn.transaction_id} is {txn.status.value}, not SCHEDULED"
                )
            error = UnsupportedScheduledType(
                f"Scheduled execution of {txn.transaction_type.value} is not supported"
            )
            now = self.clock.now()
            txn.transaction_date = now
            txn.mark_processing(now)
            txn.mark_failed(error.message, now)
            self.store.save_transaction(txn)
            self.store.commit()

        logger.warning(
            "scheduled_type_unsupported",
            extra={
                "transaction_id": txn.transaction_id,
                "transaction_type": txn.transaction_type.value,
            },
        )
        raise error

    # --- Validation ---

    def _check_amount(self, amount: Decimal) -> None:
        check_amount(amount)

    def _check_distinct(self, source_number: str, target_number: str) -> None:
        if source_number == target_number:
            raise InvalidTransfer("Cannot transfer to the same account")

    def _check_reversible(self, original: Transaction) -> None:
        if original.transaction_type == TransactionType.REVERSAL:
            raise InvalidReversalState(
                f"Transaction {original.transaction_id} is itself a reversal"
            )
        if original.status != TransactionStatus.COMPLETED:
            raise InvalidReversalState(
                f"Only COMPLETED transactions can be reversed; "
                f"{original.transaction_id} is {original.status.value}"
            )
