"""
Account and customer API endpoints.

Core errors propagate to the BankingError handler in main.py, which
maps them to HTTP status codes.
"""

from fastapi import APIRouter, Depends

from ledger_engine.api.deps import get_account_manager, get_transaction_engine
from ledger_engine.schemas.account import (
    CustomerCreate,
    CustomerResponse,
    AccountOpen,
    AccountResponse,
    AccountStatusUpdate,
)
from ledger_engine.schemas.transaction import TransactionResponse

router = APIRouter(tags=["Accounts"])


# --- Customer Endpoints ---

@router.post("/customers", response_model=CustomerResponse, status_code=201)
def create_customer(request: CustomerCreate, manager=Depends(get_account_manager)):
    """Create a new customer."""
    return manager.create_customer(request)


@router.get("/customers/{customer_id}/accounts", response_model=list[AccountResponse])
def list_customer_accounts(customer_id: int, manager=Depends(get_account_manager)):
    return manager.accounts_for_customer(customer_id)


# --- Account Endpoints ---

@router.post("/accounts", response_model=AccountResponse, status_code=201)
def open_account(request: AccountOpen, manager=Depends(get_account_manager)):
    """
    Open a new ACTIVE account.

    Interest rate and overdraft limit come from the account type.
    """
    return manager.open_account(
        request.customer_id,
        request.account_type,
        initial_deposit=request.initial_deposit,
        currency=request.currency,
    )


@router.get("/accounts", response_model=list[AccountResponse])
def list_active_accounts(manager=Depends(get_account_manager)):
    return manager.active_accounts()


@router.get("/accounts/{account_number}", response_model=AccountResponse)
def get_account(account_number: str, manager=Depends(get_account_manager)):
    """Get account details, including balances."""
    return manager.get_account(account_number)


@router.patch("/accounts/{account_number}/status", response_model=AccountResponse)
def change_account_status(
    account_number: str,
    request: AccountStatusUpdate,
    manager=Depends(get_account_manager),
):
    """
    Change account status.

    Enforces the state machine; only valid transitions
    are allowed.
    """
    return manager.change_status(account_number, request.new_status)


@router.post("/accounts/{account_number}/freeze", response_model=AccountResponse)
def freeze_account(account_number: str, manager=Depends(get_account_manager)):
    return manager.freeze(account_number)


@router.post("/accounts/{account_number}/close", response_model=AccountResponse)
def close_account(account_number: str, manager=Depends(get_account_manager)):
    """Close an account. The balance must be exactly zero."""
    return manager.close(account_number)


@router.get(
    "/accounts/{account_number}/transactions",
    response_model=list[TransactionResponse],
)
def account_history(
    account_number: str,
    limit: int | None = None,
    engine=Depends(get_transaction_engine),
):
    """Transactions touching the account, newest first."""
    return engine.history_for_account(account_number, limit=limit)
