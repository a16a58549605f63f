"""
Transaction API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger_engine.api.deps import get_transaction_engine
from ledger_engine.clock import utcnow
from ledger_engine.models.base import get_db
from ledger_engine.schemas.report import VolumeReportResponse
from ledger_engine.schemas.transaction import (
    DepositRequest,
    WithdrawalRequest,
    TransferRequest,
    ScheduleRequest,
    ReversalRequest,
    TransactionResponse,
)
from ledger_engine.services.reporting import monthly_volume, weekly_volume

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("/deposit", response_model=TransactionResponse, status_code=201)
def deposit(request: DepositRequest, engine=Depends(get_transaction_engine)):
    """Deposit money into an account."""
    return engine.deposit(request.account_number, request.amount, request.description)


@router.post("/withdraw", response_model=TransactionResponse, status_code=201)
def withdraw(request: WithdrawalRequest, engine=Depends(get_transaction_engine)):
    """Withdraw money from an account, using its overdraft if needed."""
    return engine.withdraw(request.account_number, request.amount, request.description)


@router.post("/transfer", response_model=TransactionResponse, status_code=201)
def transfer(request: TransferRequest, engine=Depends(get_transaction_engine)):
    """Transfer money between two accounts."""
    return engine.transfer(
        request.source_account_number,
        request.target_account_number,
        request.amount,
        request.description,
    )


@router.post("/schedule", response_model=TransactionResponse, status_code=201)
def schedule(request: ScheduleRequest, engine=Depends(get_transaction_engine)):
    """Record a transaction to be executed by the scheduler once it falls due."""
    return engine.schedule_future(
        request.source_account_number,
        request.target_account_number,
        request.amount,
        request.transaction_type,
        request.scheduled_date,
        request.description,
    )


@router.get("/pending", response_model=list[TransactionResponse])
def list_pending(engine=Depends(get_transaction_engine)):
    return engine.pending()


@router.get("/scheduled", response_model=list[TransactionResponse])
def list_scheduled(engine=Depends(get_transaction_engine)):
    return engine.scheduled()


@router.get("/reports/weekly", response_model=VolumeReportResponse)
def weekly_report(db: Session = Depends(get_db)):
    return weekly_volume(db, utcnow())


@router.get("/reports/monthly", response_model=VolumeReportResponse)
def monthly_report(db: Session = Depends(get_db)):
    return monthly_volume(db, utcnow())


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, engine=Depends(get_transaction_engine)):
    return engine.by_id(transaction_id)


@router.post("/{transaction_id}/reverse", response_model=TransactionResponse, status_code=201)
def reverse(
    transaction_id: str,
    request: ReversalRequest,
    engine=Depends(get_transaction_engine),
):
    """Reverse a COMPLETED transaction. Returns the REVERSAL record."""
    return engine.reverse(transaction_id, request.reason)


@router.post("/{transaction_id}/execute", response_model=TransactionResponse)
def execute(transaction_id: str, engine=Depends(get_transaction_engine)):
    """Execute a SCHEDULED transaction now instead of waiting for the scheduler."""
    return engine.execute_scheduled(transaction_id)
