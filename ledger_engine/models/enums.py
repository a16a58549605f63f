"""
Shared enumerations for database models.

Python enums mapped to database enums, so an unknown account type
or transaction status is rejected by the database as well as by
Python validation.
"""

import enum


class CustomerStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"


class AccountType(str, enum.Enum):
    """Product families a customer account can belong to."""
    SAVINGS = "SAVINGS"
    CHECKING = "CHECKING"
    BUSINESS = "BUSINESS"
    JOINT = "JOINT"
    MONEY_MARKET = "MONEY_MARKET"
    CD = "CD"
    CREDIT = "CREDIT"
    LOAN = "LOAN"


class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"
    FROZEN = "FROZEN"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    DORMANT = "DORMANT"


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    PAYMENT = "PAYMENT"
    INTEREST_CREDIT = "INTEREST_CREDIT"
    FEE_DEBIT = "FEE_DEBIT"
    REFUND = "REFUND"
    REVERSAL = "REVERSAL"
    LOAN_PAYMENT = "LOAN_PAYMENT"
    LOAN_DISBURSEMENT = "LOAN_DISBURSEMENT"
    SCHEDULED_TRANSFER = "SCHEDULED_TRANSFER"
    AUTOMATED_INTEREST = "AUTOMATED_INTEREST"
    OVERDRAFT_FEE = "OVERDRAFT_FEE"
    ATM_WITHDRAWAL = "ATM_WITHDRAWAL"
    ONLINE_TRANSFER = "ONLINE_TRANSFER"
    WIRE_TRANSFER = "WIRE_TRANSFER"
    CHECK_DEPOSIT = "CHECK_DEPOSIT"
    DIRECT_DEPOSIT = "DIRECT_DEPOSIT"

    @property
    def is_credit(self) -> bool:
        """Money flows into the (single) account."""
        return self in _CREDIT_TYPES

    @property
    def is_debit(self) -> bool:
        """Money flows out of the (single) account."""
        return self in _DEBIT_TYPES

    @property
    def is_transfer(self) -> bool:
        return self in _TRANSFER_TYPES

    @property
    def is_automated(self) -> bool:
        return self in (
            TransactionType.AUTOMATED_INTEREST,
            TransactionType.SCHEDULED_TRANSFER,
        )


_CREDIT_TYPES = frozenset({
    TransactionType.DEPOSIT,
    TransactionType.INTEREST_CREDIT,
    TransactionType.REFUND,
    TransactionType.LOAN_DISBURSEMENT,
    TransactionType.AUTOMATED_INTEREST,
    TransactionType.CHECK_DEPOSIT,
    TransactionType.DIRECT_DEPOSIT,
})

_DEBIT_TYPES = frozenset({
    TransactionType.WITHDRAWAL,
    TransactionType.PAYMENT,
    TransactionType.FEE_DEBIT,
    TransactionType.LOAN_PAYMENT,
    TransactionType.OVERDRAFT_FEE,
    TransactionType.ATM_WITHDRAWAL,
})

_TRANSFER_TYPES = frozenset({
    TransactionType.TRANSFER,
    TransactionType.SCHEDULED_TRANSFER,
    TransactionType.ONLINE_TRANSFER,
    TransactionType.WIRE_TRANSFER,
})


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REVERSED = "REVERSED"


class AuditOutcome(str, enum.Enum):
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
