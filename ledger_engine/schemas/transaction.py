"""
Pydantic schemas for transaction operations.

Amounts must be positive here too; the engine re-checks them for
callers that bypass the HTTP layer.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from ledger_engine.clock import as_naive_utc
from ledger_engine.models.enums import TransactionType, TransactionStatus


class DepositRequest(BaseModel):
    account_number: str = Field(min_length=1, max_length=20)
    amount: Decimal = Field(gt=0, decimal_places=4)
    description: str = Field(default="Cash deposit", max_length=255)


class WithdrawalRequest(BaseModel):
    account_number: str = Field(min_length=1, max_length=20)
    amount: Decimal = Field(gt=0, decimal_places=4)
    description: str = Field(default="Cash withdrawal", max_length=255)


class TransferRequest(BaseModel):
    source_account_number: str = Field(min_length=1, max_length=20)
    target_account_number: str = Field(min_length=1, max_length=20)
    amount: Decimal = Field(gt=0, decimal_places=4)
    description: str = Field(default="Transfer", max_length=255)


class ScheduleRequest(BaseModel):
    source_account_number: str = Field(min_length=1, max_length=20)
    target_account_number: str | None = Field(default=None, max_length=20)
    amount: Decimal = Field(gt=0, decimal_places=4)
    transaction_type: TransactionType = TransactionType.SCHEDULED_TRANSFER
    scheduled_date: datetime
    description: str = Field(default="Scheduled transaction", max_length=255)

    @field_validator("scheduled_date")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        """Offsets such as "Z" or "+02:00" are folded into naive UTC."""
        return as_naive_utc(value)


class ReversalRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)


class TransactionResponse(BaseModel):
    transaction_id: str
    transaction_type: TransactionType
    status: TransactionStatus
    amount: Decimal
    currency: str
    description: str
    source_account_number: str | None
    target_account_number: str | None
    source_balance_before: Decimal | None
    source_balance_after: Decimal | None
    target_balance_before: Decimal | None
    target_balance_after: Decimal | None
    transaction_date: datetime
    scheduled_date: datetime | None
    processed_date: datetime | None
    error_message: str | None

    model_config = {"from_attributes": True}
