"""
Pydantic schemas for customer and account operations.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ledger_engine.models.enums import AccountStatus, AccountType, CustomerStatus


# --- Customer Schemas ---

class CustomerCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=5, max_length=255)


class CustomerResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    status: CustomerStatus
    created_at: datetime

    model_config = {"from_attributes": True}


# --- Account Schemas ---

class AccountOpen(BaseModel):
    """Request to open a new account."""
    customer_id: int
    account_type: AccountType
    initial_deposit: Decimal | None = Field(default=None, decimal_places=4)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class AccountResponse(BaseModel):
    id: int
    account_number: str
    customer_id: int
    account_type: AccountType
    status: AccountStatus
    currency: str
    balance: Decimal
    available_balance: Decimal
    overdraft_limit: Decimal
    overdraft_used: Decimal
    interest_rate: Decimal
    last_transaction_at: datetime | None
    closed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AccountStatusUpdate(BaseModel):
    """Request to change account status."""
    new_status: AccountStatus
    reason: str = Field(min_length=1, max_length=255)
