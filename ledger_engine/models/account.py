"""
Customer account model.

Balances live on the account row and change only through
add_funds / deduct_funds, which also stamp the timestamps. The
version column is SQLAlchemy's version_id_col: every UPDATE carries
"WHERE version = <read version>", so a writer that read a stale row
fails instead of silently overwriting a newer balance.

The account has a state machine governing its lifecycle.
Invalid state transitions are rejected.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_engine.models.base import Base
from ledger_engine.models.enums import AccountType, AccountStatus


# Valid state transitions. CLOSED is terminal.
VALID_TRANSITIONS: dict[AccountStatus, set[AccountStatus]] = {
    AccountStatus.PENDING_APPROVAL: {AccountStatus.ACTIVE, AccountStatus.CLOSED},
    AccountStatus.ACTIVE: {
        AccountStatus.FROZEN,
        AccountStatus.SUSPENDED,
        AccountStatus.DORMANT,
        AccountStatus.INACTIVE,
        AccountStatus.CLOSED,
    },
    AccountStatus.FROZEN: {AccountStatus.ACTIVE, AccountStatus.SUSPENDED, AccountStatus.CLOSED},
    AccountStatus.SUSPENDED: {AccountStatus.ACTIVE, AccountStatus.FROZEN, AccountStatus.CLOSED},
    AccountStatus.DORMANT: {AccountStatus.ACTIVE, AccountStatus.FROZEN, AccountStatus.CLOSED},
    AccountStatus.INACTIVE: {AccountStatus.ACTIVE, AccountStatus.FROZEN, AccountStatus.CLOSED},
    AccountStatus.CLOSED: set(),
}

ZERO = Decimal("0")
# Scale and integer digits of the Numeric(19, 4) money columns
MONEY_QUANTUM = Decimal("0.0001")
MONEY_INTEGER_DIGITS = 15


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        CheckConstraint(
            "available_balance >= 0", name="ck_accounts_available_non_negative"
        ),
        CheckConstraint(
            "overdraft_used <= overdraft_limit", name="ck_accounts_overdraft_within_limit"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    account_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum", create_constraint=True),
        nullable=False,
    )
    status: Mapped[AccountStatus] = mapped_column(
        SAEnum(AccountStatus, name="account_status_enum", create_constraint=True),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    balance: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False, default=ZERO)
    available_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=ZERO
    )
    overdraft_limit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=ZERO
    )
    overdraft_used: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=ZERO
    )
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 6), nullable=False, default=ZERO
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_transaction_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    customer: Mapped["Customer"] = relationship(back_populates="accounts")

    @classmethod
    def new(
        cls,
        account_number: str,
        account_type: AccountType,
        customer_id: int,
        currency: str,
        interest_rate: Decimal,
        overdraft_limit: Decimal,
        opened_at: datetime,
    ) -> "Account":
        """Build an unsaved ACTIVE account with zero balances."""
        return cls(
            account_number=account_number,
            account_type=account_type,
            customer_id=customer_id,
            status=AccountStatus.ACTIVE,
            currency=currency,
            balance=ZERO,
            available_balance=ZERO,
            overdraft_limit=overdraft_limit,
            overdraft_used=ZERO,
            interest_rate=interest_rate,
            created_at=opened_at,
            updated_at=opened_at,
        )

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @property
    def unused_overdraft(self) -> Decimal:
        return self.overdraft_limit - self.overdraft_used

    @property
    def total_available(self) -> Decimal:
        """Funds usable right now: available balance plus unused overdraft."""
        return self.available_balance + self.unused_overdraft

    @property
    def position(self) -> Decimal:
        """Ledger position: balance net of any overdraft drawn."""
        return self.balance - self.overdraft_used

    def can_transition_to(self, new_status: AccountStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def touch(self, when: datetime, transacted: bool = False) -> None:
        self.updated_at = when
        if transacted:
            self.last_transaction_at = when

    def add_funds(self, amount: Decimal, when: datetime) -> None:
        """Repay any drawn overdraft first, then grow the balance."""
        repaid = min(amount, self.overdraft_used)
        self.overdraft_used -= repaid
        remainder = amount - repaid
        self.balance += remainder
        self.available_balance += remainder
        self.touch(when, transacted=True)

    def deduct_funds(self, amount: Decimal, when: datetime) -> None:
        """
        Draw available funds first, then the overdraft facility.

        The caller has already checked amount <= total_available, so
        neither balance can go negative and the overdraft stays
        within its limit.
        """
        from_funds = min(amount, self.available_balance)
        self.balance -= from_funds
        self.available_balance -= from_funds
        self.overdraft_used += amount - from_funds
        self.touch(when, transacted=True)

    def __repr__(self) -> str:
        return (
            f"<Account {self.account_number} "
            f"{self.account_type.value} ({self.status.value})>"
        )
