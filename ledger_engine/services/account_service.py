"""
Account manager: account lifecycle and balance invariants.

Lifecycle operations (open, freeze, close, status changes) commit
their own unit. The funds primitives credit() and debit() only
validate and mutate; the Transaction Engine calls them inside its
atomic unit and owns the commit.
"""

import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_engine.clock import Clock
from ledger_engine.config import get_settings
from ledger_engine.exceptions import (
    AccountNotActive,
    CustomerNotActive,
    InsufficientFunds,
    InvalidAccountState,
    InvalidAmount,
    InvalidInput,
    NonZeroBalance,
)
from ledger_engine.logging_config import get_logger
from ledger_engine.models.account import Account, MONEY_INTEGER_DIGITS, MONEY_QUANTUM, ZERO
from ledger_engine.models.customer import Customer
from ledger_engine.models.enums import AccountStatus, AccountType
from ledger_engine.schemas.account import CustomerCreate
from ledger_engine.security import Authorizer, Capability, allow_all, require
from ledger_engine.services.ledger_store import LedgerStore, account_locks

logger = get_logger("account_manager")
settings = get_settings()


# (annual interest rate, overdraft limit) applied when an account is opened.
# Types not listed open with no interest and no overdraft.
ACCOUNT_DEFAULTS: dict[AccountType, tuple[Decimal, Decimal]] = {
    AccountType.SAVINGS: (Decimal("0.025"), Decimal("0.00")),
    AccountType.CHECKING: (Decimal("0.005"), Decimal("500.00")),
    AccountType.BUSINESS: (Decimal("0.015"), Decimal("1000.00")),
}


def check_amount(amount: Decimal | None, label: str = "Amount") -> None:
    """
    Reject amounts that are not strictly positive, or that the money
    columns cannot hold without rounding.
    """
    if amount is None or not amount.is_finite() or amount <= ZERO:
        raise InvalidAmount(f"{label} must be positive, got {amount}")
    if amount.adjusted() >= MONEY_INTEGER_DIGITS:
        raise InvalidAmount(f"{label} {amount} is too large")
    if amount != amount.quantize(MONEY_QUANTUM):
        raise InvalidAmount(
            f"{label} {amount} has more precision than {MONEY_QUANTUM}"
        )


def generate_account_number() -> str:
    return f"ACC{uuid.uuid4().hex[:12].upper()}"


class AccountManager:

    def __init__(
        self,
        db: Session,
        clock: Clock | None = None,
        authorizer: Authorizer = allow_all,
        acting_user: str = "system",
    ):
        self.db = db
        self.store = LedgerStore(db)
        self.clock = clock or Clock()
        self.authorizer = authorizer
        self.acting_user = acting_user

    # --- Customers ---

    def create_customer(self, request: CustomerCreate) -> Customer:
        """Create a new customer."""
        if self.store.find_customer_by_email(request.email):
            raise InvalidInput(f"Customer with email '{request.email}' already exists")

        now = self.clock.now()
        customer = Customer(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            created_at=now,
            updated_at=now,
        )
        self.store.add_customer(customer)
        self.store.commit()
        return customer

    # --- Lifecycle ---

    def open_account(
        self,
        customer_id: int,
        account_type: AccountType,
        initial_deposit: Decimal | None = None,
        currency: str | None = None,
    ) -> Account:
        """
        Open a new ACTIVE account for an active customer.

        The interest rate and overdraft limit come from the type
        defaults. An initial deposit, when given, must be positive
        and becomes the opening balance.
        """
        customer = self.store.get_customer(customer_id)
        if not customer.is_active:
            raise CustomerNotActive(f"Customer {customer_id} is not active")

        if initial_deposit is not None:
            check_amount(initial_deposit, "Initial deposit")

        account_number = generate_account_number()
        while self.store.account_number_exists(account_number):
            account_number = generate_account_number()

        rate, overdraft_limit = ACCOUNT_DEFAULTS.get(account_type, (ZERO, ZERO))
        now = self.clock.now()
        account = Account.new(
            account_number=account_number,
            account_type=account_type,
            customer_id=customer.id,
            currency=currency or settings.DEFAULT_CURRENCY,
            interest_rate=rate,
            overdraft_limit=overdraft_limit,
            opened_at=now,
        )
        if initial_deposit is not None:
            account.add_funds(initial_deposit, now)

        self.store.add_account(account)
        self.store.commit()

        logger.info(
            "account_opened",
            extra={
                "account_number": account.account_number,
                "account_type": account_type.value,
                "customer_id": customer_id,
                "opening_balance": str(account.balance),
            },
        )
        return account

    def change_status(self, account_number: str, new_status: AccountStatus) -> Account:
        """
        Transition an account to a new status.

        Enforces the account state table. Closing additionally
        requires a zero balance with no overdraft drawn.
        """
        with account_locks.hold(account_number):
            account = self.store.get_account(account_number, for_update=True)

            if not account.can_transition_to(new_status):
                raise InvalidAccountState(
                    f"Cannot transition from {account.status.value} "
                    f"to {new_status.value}"
                )

            if new_status == AccountStatus.CLOSED:
                if account.balance != ZERO or account.overdraft_used != ZERO:
                    raise NonZeroBalance(
                        f"Account {account_number} has balance {account.balance} "
                        f"and overdraft drawn {account.overdraft_used}"
                    )

            old_status = account.status
            now = self.clock.now()
            account.status = new_status
            if new_status == AccountStatus.CLOSED:
                account.closed_at = now
            account.touch(now)

            self.store.save_account(account)
            self.store.commit()

        logger.info(
            "account_status_changed",
            extra={
                "account_number": account_number,
                "from_status": old_status.value,
                "to_status": new_status.value,
                "acting_user": self.acting_user,
            },
        )
        return account

    def freeze(self, account_number: str) -> Account:
        require(self.authorizer, self.acting_user, Capability.ACCOUNT_FREEZE)
        return self.change_status(account_number, AccountStatus.FROZEN)

    def close(self, account_number: str) -> Account:
        require(self.authorizer, self.acting_user, Capability.ACCOUNT_CLOSE)
        return self.change_status(account_number, AccountStatus.CLOSED)

    # --- Funds primitives ---

    def credit(self, account: Account, amount: Decimal) -> Account:
        """Add funds to an active account. The caller commits."""
        check_amount(amount, "Credit amount")
        self._require_active(account)

        account.add_funds(amount, self.clock.now())
        return self.store.save_account(account)

    def debit(self, account: Account, amount: Decimal) -> Account:
        """
        Remove funds from an active account. The caller commits.

        Available funds are used first, then the unused part of the
        overdraft facility.
        """
        check_amount(amount, "Debit amount")
        self._require_active(account)

        if not self.has_sufficient_funds(account, amount):
            raise InsufficientFunds(
                f"Insufficient funds in {account.account_number}: "
                f"requested {amount}, available {account.total_available}"
            )

        account.deduct_funds(amount, self.clock.now())
        return self.store.save_account(account)

    def has_sufficient_funds(self, account: Account, amount: Decimal) -> bool:
        return amount <= account.total_available

    def eligible_for_interest(self, account: Account) -> bool:
        return (
            account.account_type == AccountType.SAVINGS
            and account.is_active
            and account.balance >= settings.MIN_BALANCE_FOR_INTEREST
            and account.interest_rate > ZERO
        )

    def recompute_available_balance(self, account: Account) -> bool:
        """
        Re-derive the available balance from the balance.

        No holds are modelled, so available equals balance, clamped
        to [0, balance + overdraft_limit]. Returns True when the
        stored value changed. The caller commits.
        """
        target = min(max(account.balance, ZERO), account.balance + account.overdraft_limit)
        if account.available_balance == target:
            return False

        logger.warning(
            "available_balance_corrected",
            extra={
                "account_number": account.account_number,
                "stored": str(account.available_balance),
                "corrected": str(target),
            },
        )
        account.available_balance = target
        account.touch(self.clock.now())
        self.store.save_account(account)
        return True

    def reconcile_available_balance(self, account_number: str) -> bool:
        """Recompute one account's available balance in its own unit."""
        with account_locks.hold(account_number):
            account = self.store.get_account(account_number, for_update=True)
            changed = self.recompute_available_balance(account)
            self.store.commit()
        return changed

    # --- Reads ---

    def get_account(self, account_number: str) -> Account:
        return self.store.get_account(account_number)

    def accounts_for_customer(self, customer_id: int) -> list[Account]:
        self.store.get_customer(customer_id)
        return self.store.query_accounts(customer_id=customer_id)

    def active_accounts(self) -> list[Account]:
        return self.store.query_accounts(status=AccountStatus.ACTIVE)

    def _require_active(self, account: Account) -> None:
        if not account.is_active:
            raise AccountNotActive(
                f"Account {account.account_number} is not active "
                f"(status: {account.status.value})"
            )
