"""
Transaction model.

One row per attempted money movement. Balance snapshots are written
once, in the same commit as the balance mutation they describe.
After a record reaches a terminal status only the single
COMPLETED -> REVERSED step may touch it again.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.exceptions import InvalidStateTransition
from ledger_engine.models.base import Base
from ledger_engine.models.enums import TransactionType, TransactionStatus


VALID_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.PENDING: {TransactionStatus.PROCESSING},
    TransactionStatus.SCHEDULED: {TransactionStatus.PROCESSING},
    TransactionStatus.PROCESSING: {TransactionStatus.COMPLETED, TransactionStatus.FAILED},
    TransactionStatus.COMPLETED: {TransactionStatus.REVERSED},
    TransactionStatus.FAILED: set(),
    TransactionStatus.REVERSED: set(),
}


def generate_transaction_id() -> str:
    return f"TXN-{uuid.uuid4().hex[:20].upper()}"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transaction_type_enum", create_constraint=True),
        nullable=False,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transaction_status_enum", create_constraint=True),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    source_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    target_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    reference_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )

    source_balance_before: Mapped[Decimal | None] = mapped_column(Numeric(19, 4))
    source_balance_after: Mapped[Decimal | None] = mapped_column(Numeric(19, 4))
    target_balance_before: Mapped[Decimal | None] = mapped_column(Numeric(19, 4))
    target_balance_after: Mapped[Decimal | None] = mapped_column(Numeric(19, 4))

    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime, index=True)
    processed_date: Mapped[datetime | None] = mapped_column(DateTime)
    error_message: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    source_account: Mapped["Account | None"] = relationship(
        foreign_keys=[source_account_id]
    )
    target_account: Mapped["Account | None"] = relationship(
        foreign_keys=[target_account_id]
    )
    reference_transaction: Mapped["Transaction | None"] = relationship(
        remote_side=[id]
    )

    @classmethod
    def new(
        cls,
        transaction_type: TransactionType,
        amount: Decimal,
        currency: str,
        description: str,
        status: TransactionStatus,
        created_at: datetime,
        source_account=None,
        target_account=None,
        scheduled_date: datetime | None = None,
    ) -> "Transaction":
        """Build an unsaved record with a fresh transaction id."""
        return cls(
            transaction_id=generate_transaction_id(),
            transaction_type=transaction_type,
            amount=amount,
            currency=currency,
            description=description,
            status=status,
            source_account=source_account,
            target_account=target_account,
            scheduled_date=scheduled_date,
            transaction_date=created_at,
            created_at=created_at,
            updated_at=created_at,
        )

    @property
    def source_account_number(self) -> str | None:
        return self.source_account.account_number if self.source_account else None

    @property
    def target_account_number(self) -> str | None:
        return self.target_account.account_number if self.target_account else None

    def can_transition_to(self, new_status: TransactionStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: TransactionStatus, when: datetime) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Transaction {self.transaction_id} cannot move from "
                f"{self.status.value} to {new_status.value}"
            )
        self.status = new_status
        self.updated_at = when

    def mark_processing(self, when: datetime) -> None:
        self.transition_to(TransactionStatus.PROCESSING, when)

    def mark_completed(self, when: datetime) -> None:
        self.transition_to(TransactionStatus.COMPLETED, when)
        self.processed_date = when

    def mark_failed(self, reason: str, when: datetime) -> None:
        self.transition_to(TransactionStatus.FAILED, when)
        self.processed_date = when
        self.error_message = reason[:500]

    def mark_reversed(self, when: datetime) -> None:
        self.transition_to(TransactionStatus.REVERSED, when)

    def record_source_balances(self, before: Decimal, after: Decimal) -> None:
        if self.source_balance_before is not None:
            raise InvalidStateTransition(
                f"Source snapshots already recorded on {self.transaction_id}"
            )
        self.source_balance_before = before
        self.source_balance_after = after

    def record_target_balances(self, before: Decimal, after: Decimal) -> None:
        if self.target_balance_before is not None:
            raise InvalidStateTransition(
                f"Target snapshots already recorded on {self.transaction_id}"
            )
        self.target_balance_before = before
        self.target_balance_after = after

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_id} {self.transaction_type.value} "
            f"{self.amount} {self.currency} ({self.status.value})>"
        )
